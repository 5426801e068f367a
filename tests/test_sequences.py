import random

from clinicdesk.models.drug import Drug
from clinicdesk.models.sequence import SequenceCounter
from clinicdesk.scripts.load_drugs import seed
from clinicdesk.services.sequences import (
    SEQUENCE_PREFIXES,
    ensure_sequences,
    format_identifier,
    next_identifier,
    next_sequence,
)


def test_counters_are_created_once(database):
    with database.session() as db:
        ensure_sequences(db)
        db.commit()
        names = sorted(c.name for c in db.query(SequenceCounter).all())
    assert names == sorted(SEQUENCE_PREFIXES)


def test_next_sequence_is_monotonic(database):
    with database.session() as db:
        assert [next_sequence(db, "payment") for _ in range(3)] == [1, 2, 3]
        db.commit()
    with database.session() as db:
        assert next_sequence(db, "payment") == 4


def test_rolled_back_number_is_handed_out_again(database):
    with database.session() as db:
        next_sequence(db, "patient")
        db.rollback()
    with database.session() as db:
        assert next_sequence(db, "patient") == 1


def test_unknown_counter_starts_at_one(database):
    with database.session() as db:
        assert next_sequence(db, "invoice") == 1
        assert next_sequence(db, "invoice") == 2
        db.commit()


def test_identifier_formatting(database):
    assert format_identifier("SAL", 7) == "SAL000007"
    assert format_identifier("X", 12345, width=3) == "X12345"
    with database.session() as db:
        assert next_identifier(db, "lab_result") == "LAB000001"
        assert next_identifier(db, "lab_result", prefix="LR", width=2) == "LR02"


def test_seed_adds_drugs_once(database):
    assert seed(database, count=60, rng=random.Random(7)) == 60
    assert seed(database, rng=random.Random(7)) == 0
    with database.session() as db:
        drugs = db.query(Drug).all()
    assert len(drugs) == 60
    assert all(d.selling_price >= d.purchase_price for d in drugs)
