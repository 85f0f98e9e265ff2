"""Authentication primitives.

Learn: Two building blocks, both free of I/O:
1. password — bcrypt hashing and verification
2. jwt — event-scoped access/refresh token codec

dependencies wires them into FastAPI; the refresh-rotation protocol
itself lives in services.auth_service.
"""
