import logging
from datetime import time

from sqlalchemy.orm import Session

from storeaudio.db import Base, SessionLocal, engine
from storeaudio.models import Announcement, CartwallItem, Organization, Playlist, ScheduleRule, Store, Track
from storeaudio.schemas.schedule import DayOfWeek
from storeaudio.services.auth import create_access_token
from storeaudio.services.stores import generate_activation_code

logger = logging.getLogger("storeaudio.seed")


def _playlist(db: Session, organization: Organization, name: str, mood: str, titles: list[str]) -> Playlist:
    playlist = Playlist(organization_id=organization.id, name=name, mood=mood)
    db.add(playlist)
    db.flush()
    for order, title in enumerate(titles):
        slug = title.lower().replace(" ", "-")
        db.add(
            Track(
                playlist_id=playlist.id,
                title=title,
                artist="Demo Artist",
                file_url=f"https://cdn.example.com/audio/{slug}.mp3",
                duration_sec=180,
                order=order,
            )
        )
    return playlist


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        organization = Organization(
            name="Demo Retail",
            plan="chain",
            settings={"defaultVolume": 60, "language": "it", "enableWeather": False},
        )
        db.add(organization)
        db.flush()

        morning = _playlist(db, organization, "Morning Chill", "calm", ["Sunrise", "Slow Coffee", "Open Doors"])
        afternoon = _playlist(db, organization, "Afternoon Energy", "upbeat", ["Rush Hour", "Checkout", "Open Doors"])

        store = Store(
            organization_id=organization.id,
            name="Milano Centro",
            city="Milano",
            timezone="Europe/Rome",
            current_volume=60,
            active_playlist_id=morning.id,
            settings={"isKioskMode": True},
            activation_code=generate_activation_code(db),
        )
        db.add(store)
        db.flush()

        for day in (DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY, DayOfWeek.THURSDAY, DayOfWeek.FRIDAY):
            db.add(
                ScheduleRule(
                    store_id=store.id,
                    playlist_id=morning.id,
                    day_of_week=day.value,
                    start_time=time(9, 0),
                    end_time=time(12, 0),
                )
            )
            db.add(
                ScheduleRule(
                    store_id=store.id,
                    playlist_id=afternoon.id,
                    day_of_week=day.value,
                    start_time=time(12, 0),
                    end_time=time(18, 0),
                    volume=75,
                )
            )

        closing = Announcement(
            organization_id=organization.id,
            name="Closing soon",
            type="info",
            text="The store closes in fifteen minutes.",
            audio_url="https://cdn.example.com/audio/closing-soon.mp3",
            duration_sec=12,
        )
        db.add(closing)
        db.flush()
        db.add(CartwallItem(store_id=store.id, announcement_id=closing.id, position=0))
        db.commit()

        token = create_access_token("demo-admin", organization.id, role="admin")
        logger.info("Seeded organization %s with store %s", organization.id, store.id)
        logger.info("Activation code: %s", store.activation_code)
        logger.info("Admin token: %s", token)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    seed()
