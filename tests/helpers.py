PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

VALID_FIELDS = {
    "patient_name": "Jane Doe",
    "age": "54",
    "sex": "Female",
    "has_pacemaker": "No",
    "priority": "Urgent",
    "notes": "Chest pain since this morning",
}
