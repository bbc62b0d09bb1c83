# backend/services/alias_seeder.py
from __future__ import annotations

import argparse
import logging
from typing import Dict, List, Tuple

from utils import data_loader as dl
from utils.db import open_database
from utils.normalizer import key_variants
from services.alias_store import AliasStore
from services.catalog_service import CatalogService

log = logging.getLogger(__name__)


def build_alias_rows(catalog: CatalogService) -> List[Tuple[str, str]]:
    """
    Mine every catalog name into alias keys. The first canonical name
    seen for a key wins, so higher-priority sources claim shared keys.
    """
    key_to_canonical: Dict[str, str] = {}
    for src in catalog.sources:
        loaded = 0
        for name in catalog.iter_names(src):
            loaded += 1
            for key in sorted(key_variants(name, catalog.stop_words)):
                key_to_canonical.setdefault(key, name)
        log.info("%s: loaded %d names", src.source_id, loaded)
    return list(key_to_canonical.items())


def seed_aliases(
    catalog: CatalogService, aliases: AliasStore, batch_size: int = 1000
) -> Dict[str, int]:
    """
    Insert-ignore the mined aliases in batches. Learned aliases already
    in the table are left alone.
    """
    before = aliases.count()
    rows = build_alias_rows(catalog)
    log.info("prepared %d alias rows", len(rows))

    inserted = 0
    step = max(1, int(batch_size))
    for i in range(0, len(rows), step):
        inserted += aliases.insert_missing(rows[i:i + step])
        log.info("inserted %d/%d", min(i + step, len(rows)), len(rows))

    after = aliases.count()
    return {
        "before": before,
        "after": after,
        "prepared": len(rows),
        "inserted": inserted,
        "net_new": after - before,
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed item_aliases from the catalog tables.")
    parser.add_argument("--db", default=None, help="sqlite path (default: QUOTE_DB_PATH or data/quotation.db)")
    parser.add_argument("--batch-size", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    matching = dl.get_matching()
    db = open_database(args.db or dl.db_path(), dl.get_sources(), stop_words=matching["stop_words"])
    try:
        stats = seed_aliases(
            CatalogService(db, stop_words=matching["stop_words"]),
            AliasStore(db),
            batch_size=args.batch_size or matching["seed_batch_size"],
        )
    finally:
        db.close()
    log.info(
        "done: item_aliases before=%(before)d after=%(after)d inserted=%(inserted)d net_new=%(net_new)d",
        stats,
    )


if __name__ == "__main__":
    main()
