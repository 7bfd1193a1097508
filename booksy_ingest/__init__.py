"""
Booksy notification ingestion for the salon platform.

A small pipeline that:
- Receives Booksy booking notifications through a webhook
- Parses the Polish notification body
- Matches service, employee and client inside the salon
- Creates bookings exactly once per provider event
- Parks anything it cannot book in a triage queue for operators
"""
