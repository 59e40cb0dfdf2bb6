"""
schema.py - Gossip relay storage model.

Four relations:
- chains:       chain identities (key = encoded ordered chain)
- scts:         SCT identities (key = the token)
- sct_feedback: presence-only (chain_id, sct_id) pairs
- sths:         STH pollination tuples, full tuple is the primary key

Rows are NEVER updated and NEVER deleted. Identities are never recycled.
"""

from sqlalchemy import BigInteger, Column, DDL, ForeignKey, Index, Integer, String, Text, event
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base with proper typing."""

    pass


class ChainRow(Base):
    __tablename__ = "chains"

    chain_id = Column(Integer, primary_key=True, autoincrement=True)
    chain_key = Column(String(71), nullable=False, unique=True)  # "sha256:" + 64 hex

    # AUTOINCREMENT keeps SQLite from ever handing out an old rowid again
    __table_args__ = {"sqlite_autoincrement": True}


class SCTRow(Base):
    __tablename__ = "scts"

    sct_id = Column(Integer, primary_key=True, autoincrement=True)
    sct = Column(Text, nullable=False, unique=True)

    __table_args__ = {"sqlite_autoincrement": True}


class FeedbackRow(Base):
    """Presence of a (chain, sct) observation. No payload."""
    __tablename__ = "sct_feedback"

    chain_id = Column(Integer, ForeignKey("chains.chain_id"), primary_key=True)
    sct_id = Column(Integer, ForeignKey("scts.sct_id"), primary_key=True)


class STHRow(Base):
    """
    Signed Tree Head pollination entry.

    No surrogate id: the six-column tuple is the identity.
    """
    __tablename__ = "sths"

    version = Column(BigInteger, primary_key=True, autoincrement=False)
    tree_size = Column(BigInteger, primary_key=True, autoincrement=False)
    timestamp = Column(BigInteger, primary_key=True, autoincrement=False)  # seconds since epoch
    root_hash = Column(Text, primary_key=True)
    signature = Column(Text, primary_key=True)
    log_id = Column(Text, primary_key=True)

    __table_args__ = (
        # Freshness-window scans
        Index("idx_sths_timestamp", "timestamp"),
    )


STH_COLUMNS = (
    STHRow.version,
    STHRow.tree_size,
    STHRow.timestamp,
    STHRow.root_hash,
    STHRow.signature,
    STHRow.log_id,
)

APPEND_ONLY_TABLES = ("chains", "scts", "sct_feedback", "sths")


# Append-only enforcement: UPDATE and DELETE are rejected at the database level
reject_mutation_function = DDL("""
    CREATE OR REPLACE FUNCTION reject_gossip_mutation()
    RETURNS TRIGGER AS $$
    BEGIN
        RAISE EXCEPTION 'Gossip records are append-only. Operation %% is forbidden on %%.', TG_OP, TG_TABLE_NAME;
    END;
    $$ LANGUAGE plpgsql;
""")

event.listen(
    Base.metadata,
    "before_create",
    reject_mutation_function.execute_if(dialect="postgresql"),
)

for _table in APPEND_ONLY_TABLES:
    event.listen(
        Base.metadata.tables[_table],
        "after_create",
        DDL(
            f"CREATE TRIGGER prevent_{_table}_mutation "
            f"BEFORE UPDATE OR DELETE ON {_table} "
            f"FOR EACH ROW EXECUTE FUNCTION reject_gossip_mutation()"
        ).execute_if(dialect="postgresql"),
    )
    # SQLite executes one statement per DDL and has no UPDATE OR DELETE trigger form
    for _op in ("UPDATE", "DELETE"):
        event.listen(
            Base.metadata.tables[_table],
            "after_create",
            DDL(
                f"CREATE TRIGGER IF NOT EXISTS prevent_{_table}_{_op.lower()} "
                f"BEFORE {_op} ON {_table} "
                f"BEGIN SELECT RAISE(ABORT, 'Gossip records are append-only'); END"
            ).execute_if(dialect="sqlite"),
        )
