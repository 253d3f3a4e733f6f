from performate.routers import admin, attendance, auth, classes, morning_bliss, reports, stars, students, tallies

__all__ = [
    'admin',
    'attendance',
    'auth',
    'classes',
    'morning_bliss',
    'reports',
    'stars',
    'students',
    'tallies',
]
