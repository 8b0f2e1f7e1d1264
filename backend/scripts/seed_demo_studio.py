from studiobook.db.models import Facility, Studio
from studiobook.db.session import SessionLocal
from studiobook.scheduling.operating_hours import default_operating_hours


def seed_demo_studio() -> None:
    session = SessionLocal()
    try:
        existing = session.query(Studio).filter(Studio.name == "Demo Photo Studio").first()
        if existing is not None:
            print(f"Demo studio already exists with id={existing.id}")
            return

        hours = default_operating_hours()
        hours["sunday"] = {"open": "10:00", "close": "18:00", "isOpen": True}
        demo = Studio(
            name="Demo Photo Studio",
            timezone="Asia/Jakarta",
            phone="+62215550100",
            operating_hours=hours,
        )
        session.add(demo)
        session.flush()
        session.add_all(
            [
                Facility(studio_id=demo.id, name="Main Studio", capacity=10, is_available=True),
                Facility(studio_id=demo.id, name="Makeup Room", capacity=3, is_available=True),
            ]
        )
        session.commit()
        session.refresh(demo)
        print(f"Created demo studio with id={demo.id}")
    finally:
        session.close()


if __name__ == "__main__":
    seed_demo_studio()
