import logging
import re
from typing import Optional

from .errors import StoreError
from .gateway import TriageStore
from .settings import DEFAULT_CALLING_CODE

logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], calling_code: Optional[str] = DEFAULT_CALLING_CODE) -> str:
    # with a calling code, a trunk "0" national number becomes +<code><number>
    if not raw:
        return ""
    trimmed = raw.strip()
    digits = NON_DIGITS.sub("", trimmed)
    if not digits:
        return ""
    if trimmed.startswith("+"):
        return f"+{digits}"
    if calling_code and digits.startswith("0"):
        return f"+{calling_code}{digits[1:]}"
    return digits


class DedupResolver:
    def __init__(self, store: TriageStore, calling_code: Optional[str] = DEFAULT_CALLING_CODE):
        self.store = store
        self.calling_code = calling_code

    def normalize(self, raw: Optional[str]) -> str:
        return normalize_phone(raw, self.calling_code)

    def find_business_by_phone(self, phone: Optional[str]) -> Optional[int]:
        # advisory: a store failure counts as no match
        normalized = self.normalize(phone)
        if not normalized:
            return None
        try:
            return self.store.find_business_id_by_phone(normalized)
        except StoreError:
            logger.warning("Business lookup by phone failed; continuing without dedup")
            return None
