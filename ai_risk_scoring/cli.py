"""
AI Risk Scoring - CLI.

============================================================
RESPONSIBILITY
============================================================
Look up the stored AI risk score of a transaction directly in
the database and print it as JSON.

Exit codes:
    0  score printed
    1  invalid hash or lookup failure
    2  no score stored for the hash

============================================================
USAGE
============================================================
python -m ai_risk_scoring.cli 0x<64 hex chars>
python -m ai_risk_scoring.cli <64 hex chars> --database-url sqlite:///scores.db
python -m ai_risk_scoring.cli 0x<64 hex chars> --init-db

--init-db verifies the connection and creates missing tables
before the lookup; any failure exits with 1.

============================================================
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from database.engine import (
    create_database_engine,
    create_session_factory,
    get_db_session,
    initialize_database,
)
from ai_risk_scoring.repository import TxAiRiskScoreRepository, row_to_score
from ai_risk_scoring.schemas import AiRiskScoreResponse
from ai_risk_scoring.utils import normalize_tx_hash


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ai-risk-score",
        description="Print the stored AI risk score for a transaction",
    )

    parser.add_argument(
        "tx_hash",
        type=str,
        help="Transaction hash (32 bytes hex, with or without 0x)",
    )

    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: DATABASE_URL or DATABASE_* variables)",
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Verify the connection and create missing tables first",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    return parser


def fetch_score(tx_hash: str, session_factory: sessionmaker) -> Optional[AiRiskScoreResponse]:
    with get_db_session(session_factory) as session:
        row = TxAiRiskScoreRepository(session).get_by_tx_hash(tx_hash)
        if row is None:
            return None
        return AiRiskScoreResponse.from_score(row_to_score(row))


def main(
    argv: Optional[List[str]] = None,
    session_factory: Optional[sessionmaker] = None,
) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
        session_factory: Session factory to use instead of creating an engine

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    tx_hash = normalize_tx_hash(args.tx_hash)
    if tx_hash is None:
        print("Invalid transaction hash supplied.", file=sys.stderr)
        return EXIT_ERROR

    try:
        if session_factory is None:
            engine = create_database_engine(args.database_url)
            if args.init_db:
                initialize_database(engine)
            session_factory = create_session_factory(engine)
        response = fetch_score(tx_hash, session_factory)
    except Exception as e:
        logger.debug(f"AI risk score lookup failed for {tx_hash}", exc_info=True)
        print(f"Failed to fetch AI risk score: {e}", file=sys.stderr)
        return EXIT_ERROR

    if response is None:
        print("No AI risk score found for that hash.", file=sys.stderr)
        return EXIT_NOT_FOUND

    print(json.dumps(response.model_dump(mode="json", by_alias=True), indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
