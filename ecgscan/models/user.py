from ecgscan.extensions import db, bcrypt
from ecgscan.utils.clock import utcnow


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=True) # NULL for firebase-only accounts
    username = db.Column(db.String(100), nullable=False)
    avatar_url = db.Column(db.String(255), nullable=True)

    firebase_uid = db.Column(db.String(128), unique=True, nullable=True)
    auth_provider = db.Column(db.String(20), nullable=True)  # 'firebase' / 'password'

    role = db.Column(db.String(20), nullable=False, default='nurse') # 'nurse' / 'physician'
    created_at = db.Column(db.DateTime, default=utcnow)

    def set_password(self, password):
        # bcrypt hash comes back as bytes, keep it as a utf-8 string
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
