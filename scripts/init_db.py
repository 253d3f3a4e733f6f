from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from performate.db import Base, SessionLocal, engine
from performate.models import ClassReason, PerformanceReason, StarReason, Student
from performate.services.class_service import seed_default_classes


SAMPLE_CLASS_REASONS = [('Late to class', 1), ('Homework missing', 2), ('Disturbing the class', 3)]
SAMPLE_PERFORMANCE_REASONS = [('Uniform not proper', 1), ('Missed prayer', 2)]
SAMPLE_STAR_REASONS = [('Helped a classmate', 1), ('Led the assembly', 2)]


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    seed_default_classes(db)
    if not db.query(Student).first():
        db.add_all(
            [
                Student(name='Aarav', roll_number='1', class_name='S1A'),
                Student(name='Diya', roll_number='2', class_name='S1A'),
                Student(name='Ishaan', roll_number='1', class_name='C1B'),
            ]
        )
        db.add_all([ClassReason(reason=label, tally=value) for label, value in SAMPLE_CLASS_REASONS])
        db.add_all([PerformanceReason(reason=label, tally=value) for label, value in SAMPLE_PERFORMANCE_REASONS])
        db.add_all([StarReason(reason=label, stars=value) for label, value in SAMPLE_STAR_REASONS])
        db.commit()
finally:
    db.close()

print('DB initialized with sample data.')
