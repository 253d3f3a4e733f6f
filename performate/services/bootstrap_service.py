import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from performate.models import Mentor
from performate.services.class_service import seed_default_classes


logger = logging.getLogger(__name__)


def run_bootstrap(db: Session) -> dict:
    created_classes = seed_default_classes(db)
    mentors_count = db.execute(select(func.count(Mentor.id))).scalar_one()
    if mentors_count == 0:
        logger.warning('bootstrap_no_mentors sign up the first mentor via /api/auth/signup')
    logger.info('bootstrap_done classes_created=%s mentors=%s', created_classes, mentors_count)
    return {'classes_created': created_classes, 'mentors_count': int(mentors_count)}
