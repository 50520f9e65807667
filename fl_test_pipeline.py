import asyncio
import logging
import random

from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_db
from app.models.fl_model_update import FLModelUpdate

# -----------------------------
# Import FL services & helpers
# -----------------------------
from app.services.fl_local_training import (
    NUM_FEATURES,
    StudentModel,
    extract_weights,
    load_global_weights,
    privatize_update,
    train_locally,
)
from app.services.fl_service import handle_model_request, handle_submission

# -----------------------------
# Synthetic quiz data generator
# -----------------------------
def generate_synthetic_quiz(num_answers=40):
    """Feature rows shaped like the on-device quiz encoder; label is pass/fail"""
    features, labels = [], []
    for _ in range(num_answers):
        row = [random.random() for _ in range(NUM_FEATURES)]
        correct = 1.0 if row[3] + 0.3 * random.random() > 0.6 else 0.0
        row[5] = correct
        features.append(row)
        labels.append(correct)
    return features, labels

# -----------------------------
# Logging Setup
# -----------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("fl_test_pipeline")

COURSE_ID = "demo-course"
NUM_STUDENTS = settings.FL_MIN_BATCH_SIZE

# -----------------------------
# FL Pipeline: one aggregation round
# -----------------------------
async def run_fl_pipeline():
    await init_db()

    async with AsyncSessionLocal() as session:
        # -----------------------------
        # 1. Pull current global model (may not exist yet)
        # -----------------------------
        current = await handle_model_request(session, COURSE_ID)
        if current:
            logger.info(f"Starting from global model v{current.version}")
        else:
            logger.info("No global model yet, students start from scratch")

        # -----------------------------
        # 2. Each student trains locally and submits
        # -----------------------------
        for idx in range(NUM_STUDENTS):
            model = StudentModel()
            if current:
                load_global_weights(model, current.weights, current.biases)

            features, labels = generate_synthetic_quiz()
            accuracy = train_locally(model, features, labels, epochs=10)

            weights, biases = extract_weights(model)
            weights, biases = privatize_update(weights, biases)

            result = await handle_submission(
                session,
                FLModelUpdate(
                    student_id=f"student-{idx}",
                    course_id=COURSE_ID,
                    weights=weights,
                    biases=biases,
                    accuracy=accuracy,
                    privacy_budget_used=settings.FL_CLIENT_EPSILON,
                ),
            )
            logger.info(
                f"student-{idx} submitted (accuracy={accuracy:.3f}), aggregated={result.aggregated}"
            )
            if result.new_version:
                logger.info(
                    f"Global model v{result.new_version.version} from "
                    f"{result.new_version.num_contributors} students, "
                    f"avg accuracy {result.new_version.avg_accuracy:.3f}"
                )

        logger.info("\n=== FL Pipeline Complete ===")

# -----------------------------
# Entry Point
# -----------------------------
if __name__ == "__main__":
    asyncio.run(run_fl_pipeline())
