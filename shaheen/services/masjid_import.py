"""Import masjid reference data from the first sheet of an Excel workbook."""
import logging
from pathlib import Path
from typing import Union

import pandas as pd

from shaheen.models.masjid import Masjid
from shaheen.services.normalize import masjid_from_row
from shaheen.store.base import MASJID, Store

logger = logging.getLogger(__name__)


def read_masjid_rows(path: Union[str, Path]) -> list[dict]:
    df = pd.read_excel(path, sheet_name=0, engine="openpyxl")
    return df.to_dict(orient="records")


async def import_masjids(store: Store, path: Union[str, Path]) -> int:
    """Upsert one `Masjid` document per complete row; returns the number imported."""
    imported = 0
    for row in read_masjid_rows(path):
        parsed = masjid_from_row(row)
        if parsed is None:
            logger.warning("Skipping row due to missing fields: %s", row)
            continue
        document_id, name, cluster_number = parsed
        masjid = Masjid(id=document_id, name=name, cluster_number=cluster_number)
        await store.set(MASJID, masjid.id, masjid.to_document())
        logger.info("Imported Masjid: %s (%s, Cluster: %s)", masjid.id, masjid.name, masjid.cluster_number)
        imported += 1
    logger.info("Import complete: %d masjids", imported)
    return imported
