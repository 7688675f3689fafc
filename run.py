from ecgscan import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # socketio.run, not app.run, so the per-record chat push works
    socketio.run(app, debug=True, port=5000)
