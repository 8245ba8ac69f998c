"""inventory/ -- Item records and their image uploads.

Layer rule: inventory/ imports only stdlib + third-party libraries and
auth/store.py's engine helper. api/ and web/ import from inventory/.
"""
