"""
Extraction of birthday contacts from raw vCard records
"""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from icalendar.parser import Contentlines, Parameters

from bdayfeed.birthday import Birthday, NormalizationError, next_occurrence, normalize

logger = logging.getLogger(__name__)

_NAME_PATTERN = re.compile(r'[^;:]*')


@dataclass(frozen=True)
class ContactOccurrence:
    """A contact together with the next occurrence of their birthday"""

    full_name: str
    birthday: Birthday
    next_occurrence: date
    age: Optional[int]
    uid: str = ''


class ExtractionStatus(enum.Enum):
    OK = 'ok'
    SKIP = 'skip'
    ERROR = 'error'


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    occurrence: Optional[ContactOccurrence] = None
    reason: str = ''

    @property
    def ok(self) -> bool:
        return self.status is ExtractionStatus.OK


def _property_name(name: str) -> str:
    # item1.BDAY and friends: drop the group prefix
    return name.split('.')[-1].upper()


def _read_properties(record: str) -> Dict[str, tuple]:
    """
    Map property names to (params, value) of their first content line.

    Lines icalendar cannot split (vCard 2.1 style bare parameters, binary
    garbage) are ignored. A BDAY line keeps its value and loses its
    parameters.
    """
    properties = {}
    for line in Contentlines.from_ical(record.strip()):
        if not line:
            continue
        try:
            name, params, value = line.parts()
        except ValueError:
            head = _property_name(_NAME_PATTERN.match(line).group(0))
            if head == 'BDAY' and ':' in line:
                properties.setdefault(head, (Parameters(), line.split(':', 1)[1]))
                continue
            logger.debug(f"Ignoring unreadable vCard line: {line[:80]}")
            continue
        properties.setdefault(_property_name(name), (params, value))
    return properties


def _display_name(properties: Dict[str, tuple]) -> str:
    if 'FN' in properties:
        return properties['FN'][1].strip()
    if 'N' in properties:
        # N:family;given;additional;prefix;suffix
        parts = properties['N'][1].split(';')
        family = parts[0].strip()
        given = parts[1].strip() if len(parts) > 1 else ''
        return ' '.join(part for part in (given, family) if part)
    return ''


def extract(record: str, today: date, leap_day_rule: str = 'feb28') -> ExtractionResult:
    """
    Turn one vCard into a ContactOccurrence.

    Records without BDAY are skipped. Unreadable records and unparsable
    birthdays are reported as errors instead of raising.
    """
    try:
        properties = _read_properties(record)
    except ValueError as e:
        return ExtractionResult(ExtractionStatus.ERROR, reason=f'Unreadable vCard: {e}')

    if 'BDAY' not in properties:
        return ExtractionResult(ExtractionStatus.SKIP, reason='No BDAY field')

    full_name = _display_name(properties)
    params, raw_birthday = properties['BDAY']

    try:
        birthday = normalize(raw_birthday)
    except NormalizationError as e:
        return ExtractionResult(ExtractionStatus.ERROR, reason=f'{full_name or "<unnamed>"}: {e}')

    # Apple Contacts stores year-less birthdays with a placeholder year
    omit_year = params.get('X-APPLE-OMIT-YEAR')
    if birthday.year is not None and omit_year and omit_year.strip() == str(birthday.year):
        birthday = Birthday(month=birthday.month, day=birthday.day)

    occurrence = next_occurrence(birthday, today, leap_day_rule)
    return ExtractionResult(
        ExtractionStatus.OK,
        occurrence=ContactOccurrence(
            full_name=full_name,
            birthday=birthday,
            next_occurrence=occurrence.date,
            age=occurrence.age,
            uid=properties['UID'][1].strip() if 'UID' in properties else '',
        ),
    )


def extract_all(records: Iterable[str], today: date, leap_day_rule: str = 'feb28') -> List[ContactOccurrence]:
    """Extract every record, keeping input order and skipping bad ones"""
    contacts = []
    skipped = 0
    failed = 0

    for record in records:
        result = extract(record, today, leap_day_rule)
        if result.ok:
            contact = result.occurrence
            logger.debug(f"Parsed contact: {contact.full_name} (next birthday {contact.next_occurrence}, age {contact.age})")
            contacts.append(contact)
        elif result.status is ExtractionStatus.SKIP:
            skipped += 1
        else:
            failed += 1
            logger.warning(f"Skipping contact with invalid birthday: {result.reason}")

    logger.info(f"Extracted {len(contacts)} birthdays ({skipped} contacts without birthday, {failed} invalid)")
    return contacts
