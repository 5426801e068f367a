"""
Seed ~100 drugs into the inventory.

Usage:
  python -m clinicdesk.scripts.load_drugs            # uses DATABASE_URL
  DATABASE_URL=sqlite:///./data/clinic.db python -m clinicdesk.scripts.load_drugs
"""
import logging
import random
from decimal import Decimal
from typing import Optional

from clinicdesk.core.config import settings
from clinicdesk.core.db import Database
from clinicdesk.core.logging_config import setup_logging
from clinicdesk.models.drug import Drug

log = logging.getLogger("clinicdesk.scripts")

CATALOGUE = [
    ("Paracetamol", "Acetaminophen", ["500 mg", "650 mg"], "tablet", "ANALGESIC"),
    ("Ibuprofen", "Ibuprofen", ["200 mg", "400 mg"], "tablet", "ANALGESIC"),
    ("Azithromycin", "Azithromycin", ["250 mg", "500 mg"], "tablet", "ANTIBIOTIC"),
    ("Amoxicillin", "Amoxicillin", ["250 mg", "500 mg"], "capsule", "ANTIBIOTIC"),
    ("Pantoprazole", "Pantoprazole", ["40 mg"], "tablet", "GASTRO"),
    ("Metformin", "Metformin", ["500 mg", "1000 mg"], "tablet", "ANTIDIABETIC"),
    ("Cetirizine", "Cetirizine", ["10 mg"], "tablet", "ANTIHISTAMINE"),
    ("Cough Syrup", "Dextromethorphan", ["100 ml", "200 ml"], "syrup", "RESPIRATORY"),
    ("ORS", "Oral rehydration salts", ["21 g sachet"], "sachet", "GENERAL"),
    ("Calcium", "Calcium carbonate", ["500 mg"], "tablet", "SUPPLEMENT"),
]


def seed(database: Database, count: int = 100, rng: Optional[random.Random] = None) -> int:
    """Insert ``count`` random drugs unless the inventory already has 50+. Returns rows added."""
    rng = rng or random.Random()
    with database.session() as db:
        existing = db.query(Drug).count()
        if existing >= 50:
            log.info("Inventory already has %s items. Skipping seed.", existing)
            return 0

        items = []
        for _ in range(count):
            name, generic, strengths, form, category = rng.choice(CATALOGUE)
            cost = Decimal(str(round(rng.uniform(5, 200), 2)))
            items.append(Drug(
                name=name,
                generic_name=generic,
                strength=rng.choice(strengths),
                dosage_form=form,
                category=category,
                purchase_price=cost,
                selling_price=(cost * Decimal("1.25")).quantize(Decimal("0.01")),
                stock_quantity=rng.randint(0, 400),
                minimum_stock_level=rng.choice([10, 20, 30, 50]),
                created_by="seed",
            ))

        db.add_all(items)
        db.commit()
    log.info("Seeded %s drugs.", len(items))
    return len(items)


def main():
    setup_logging(settings.LOG_LEVEL)
    database = Database(settings.DATABASE_URL).connect()
    try:
        database.create_all()
        seed(database)
    finally:
        database.close()


if __name__ == "__main__":
    main()
