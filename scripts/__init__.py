"""
MedTracker Scripts
Demo data seeding, notification association backfill and the reminder scan
runner. Each script is run directly, e.g. `python scripts/seed_data.py`.
"""
