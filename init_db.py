"""
Database initialization script
Run this to create tables and, with --seed, a sample payee per class
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from decimal import Decimal

from payout_engine.core.database import engine, Base, SessionLocal
from payout_engine.models import PayeeClass, PayeeConfig
from payout_engine.services.payees import default_schedule


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


SAMPLE_PAYEES = [
    ("recruiter@example.com", "Sample Recruiter", PayeeClass.RECRUITER, {}),
    ("recruitment.manager@example.com", "Sample Recruitment Manager", PayeeClass.RECRUITMENT_MANAGER, {}),
    ("account.executive@example.com", "Sample Account Executive", PayeeClass.ACCOUNT_EXECUTIVE, {
        "base_rate": Decimal("0.01"),
        "tier1_rate": Decimal("0.015"),
        "tier1_threshold": Decimal("25000"),
        "tier2_rate": Decimal("0.02"),
        "tier2_threshold": Decimal("50000"),
    }),
    ("account.manager@example.com", "Sample Account Manager", PayeeClass.ACCOUNT_MANAGER, {
        "is_american": True,
        "american_rate": Decimal("0.02"),
        "deal_owner_rate": Decimal("0.01"),
    }),
]


def seed_data():
    """Seed one payee per class"""
    db = SessionLocal()

    try:
        print("\nSeeding sample payees...")
        for email, name, payee_class, schedule in SAMPLE_PAYEES:
            if db.query(PayeeConfig).filter(PayeeConfig.email == email).first():
                continue
            db.add(PayeeConfig(
                email=email,
                name=name,
                payee_class=payee_class,
                **(schedule or default_schedule(payee_class)),
            ))
            print(f"✓ {payee_class.value} created ({email})")

        db.commit()
        print("\n✓ Database seeded successfully")

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
    if "--seed" in sys.argv:
        seed_data()
