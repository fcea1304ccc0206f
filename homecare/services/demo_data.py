import logging
import random
from datetime import date, datetime, time, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from ..models.care_plan import CareItem, CarePlanDetail
from ..models.medication import Medication, MedicationPlan, ScheduleRule
from ..models.tour import Event, Tour
from .schedule_rules import build_schedule_rule, rule_to_fields
from .time_utils import minutes_to_time

logger = logging.getLogger(__name__)

fake = Faker("fr_FR")

MEDICINES = ["Paracétamol", "Metformine", "Bisoprolol", "Furosémide", "Lévothyroxine", "Oméprazole"]

CARE_ITEMS = [
    ("AEV1", "Aide aux actes essentiels de la vie", 210),
    ("AEV2", "Aide à l'hygiène corporelle", 140),
    ("TS1", "Soins techniques infirmiers", 70),
    ("AAD", "Aide aux tâches domestiques", 120),
]

WEEKDAY_OCCURRENCES = [
    {"name": "Lundi", "value": "1"},
    {"name": "Mardi", "value": "2"},
    {"name": "Mercredi", "value": "3"},
    {"name": "Jeudi", "value": "4"},
    {"name": "Vendredi", "value": "5"},
]


def _rule_payloads(today: date) -> list[dict]:
    first_dose = datetime.combine(today + timedelta(days=2), time(10, 30))
    return [
        {"schedule_kind": "parts", "dose": 1, "parts_of_day": ["morning", "evening"]},
        {"schedule_kind": "times", "dose": 500, "dose_unit": "mg", "exact_times": ["07:30", "19:30"]},
        {"schedule_kind": "weekly", "dose": 2, "weekdays": [0, 3], "weekly_time": "09:00"},
        {"schedule_kind": "monthly", "dose": 1, "days_of_month": [1, 15], "monthly_time": "08:00"},
        {"schedule_kind": "specific", "dose": 1, "specific_datetimes": [first_dose.isoformat()]},
        {
            "schedule_kind": "prn",
            "dose": 1,
            "prn_condition": "Douleur > 4/10",
            "prn_max_doses_per_day": 3,
            "prn_min_interval_hours": 6,
        },
    ]


def seed_medication_plans(db: Session, count: int = 3, today: date | None = None) -> list[MedicationPlan]:
    today = today or date.today()
    plans = []
    for _ in range(count):
        plan = MedicationPlan(
            patient_id=fake.random_int(min=1000, max=9999),
            patient_name=fake.name(),
            description=f"Plan de médication {fake.word()}",
            plan_start_date=today - timedelta(days=random.randint(0, 60)),
        )
        db.add(plan)
        db.flush()

        for order, payload in enumerate(_rule_payloads(today)):
            medication = Medication(
                plan_id=plan.id,
                medicine_name=random.choice(MEDICINES),
                dosage=payload.get("dose_unit", "comprimé"),
                date_started=plan.plan_start_date,
            )
            db.add(medication)
            db.flush()
            rule = build_schedule_rule({**payload, "rule_order": order})
            db.add(ScheduleRule(medication_id=medication.id, created_by="seed", **rule_to_fields(rule)))
        plans.append(plan)
    return plans


def seed_care_plan_details(db: Session, count: int = 3) -> list[CarePlanDetail]:
    details = []
    for index in range(count):
        occurrences = [{"name": "Tous les jours", "value": "*"}] if index == 0 else WEEKDAY_OCCURRENCES
        start = random.choice([420, 480, 540])
        detail = CarePlanDetail(
            care_plan_id=fake.random_int(min=100, max=999),
            name=f"Passage {fake.word()}",
            time_start=minutes_to_time(start),
            time_end=minutes_to_time(start + random.choice([30, 45, 60])),
            occurrences=occurrences,
        )
        for code, description, weekly in random.sample(CARE_ITEMS, k=2):
            detail.care_items.append(
                CareItem(
                    code=code,
                    description=description,
                    weekly_package_minutes=weekly,
                    quantity=random.randint(1, 2),
                )
            )
        db.add(detail)
        details.append(detail)
    return details


def seed_tours(db: Session, count: int = 2, on: date | None = None) -> list[Tour]:
    on = on or date.today()
    tours = []
    for _ in range(count):
        employee_id = fake.random_int(min=1, max=200)
        tour = Tour(
            name=f"Tournée {fake.city()}",
            employee_id=employee_id,
            employee_name=fake.name(),
            date=on,
            time_start="08:00",
            time_end="17:00",
            break_duration_minutes=30,
        )
        db.add(tour)
        db.flush()

        # Every third visit starts before the previous one ends.
        cursor = previous_end = 8 * 60 + 15
        for index in range(6):
            duration = random.choice([30, 45, 60])
            start = previous_end - 10 if index % 3 == 2 else cursor
            db.add(
                Event(
                    patient_id=fake.random_int(min=1000, max=9999),
                    patient_name=fake.name(),
                    employee_id=employee_id,
                    date=on,
                    time_start=minutes_to_time(start),
                    time_end=minutes_to_time(start + duration),
                    event_type="care",
                    event_address=fake.address().replace("\n", ", "),
                    tour_id=tour.id,
                )
            )
            previous_end = start + duration
            cursor = previous_end + random.choice([5, 15, 30])

        for _ in range(3):
            start = random.choice([600, 780, 900])
            db.add(
                Event(
                    patient_id=fake.random_int(min=1000, max=9999),
                    patient_name=fake.name(),
                    date=on,
                    time_start=minutes_to_time(start),
                    time_end=minutes_to_time(start + 30),
                    event_type="care",
                    event_address=fake.address().replace("\n", ", "),
                )
            )
        tours.append(tour)
    return tours


def seed_demo_data(db: Session, seed: int | None = None) -> dict[str, int]:
    if seed is not None:
        random.seed(seed)
        Faker.seed(seed)
    plans = seed_medication_plans(db)
    details = seed_care_plan_details(db)
    tours = seed_tours(db)
    db.flush()
    counts = {"medication_plans": len(plans), "care_plan_details": len(details), "tours": len(tours)}
    logger.info("Seeded demo data: %s", counts)
    return counts
