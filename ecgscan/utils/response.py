from flask import jsonify

def response(status_code, message, data=None):
    """
    Standard API envelope: {"status", "message", "data"}
    """
    res_structure = {
        "status": status_code,
        "message": message,
        "data": data
    }
    return jsonify(res_structure), status_code

def success(data=None, message="Success", status_code=200):
    return response(status_code, message, data)

def created(data=None, message="Created"):
    return response(201, message, data)

def error(message="Something went wrong", status_code=400, data=None):
    return response(status_code, message, data)

def error_from(exc):
    """Envelope for any EcgScanError; the exception carries its own HTTP status."""
    data = {"kind": exc.kind}
    if exc.details:
        data["details"] = exc.details
    return error(exc.message, exc.status_code, data)
