"""
iCalendar feed generation for upcoming birthdays
"""

import hashlib
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from icalendar import Alarm, Calendar, Event, vText

from bdayfeed.contacts import ContactOccurrence

logger = logging.getLogger(__name__)

PRODID = '-//bdayfeed//Birthday Calendar//DE'

DEFAULT_TITLE_TEMPLATE = '🎁 {name} (wird {age} Jahre)'
DEFAULT_DESCRIPTION_TEMPLATE = '🎁 Geburtstag von {name} (wird {age} Jahre)'
DEFAULT_TITLE_NO_AGE_TEMPLATE = '🎁 {name}'
DEFAULT_DESCRIPTION_NO_AGE_TEMPLATE = '🎁 Geburtstag von {name}'

# DTSTAMP when no stamp is given; constant so identical input gives identical output
DEFAULT_STAMP = datetime(2000, 1, 1, tzinfo=timezone.utc)


def make_uid(contact: ContactOccurrence) -> str:
    """Stable UID for one birthday occurrence of one contact"""
    if contact.uid:
        base = f"{contact.uid}|{contact.next_occurrence.isoformat()}"
    else:
        base = f"{contact.full_name}|{contact.birthday.isoformat()}|{contact.next_occurrence.isoformat()}"
    digest = hashlib.sha1(base.encode('utf-8')).hexdigest()
    return f"birthday-{digest}@bdayfeed"


class FeedSynthesizer:
    """Builds the calendar document served to subscribers"""

    def __init__(
        self,
        calendar_name: str = 'Geburtstage',
        timezone_name: str = 'Europe/Berlin',
        alarm_time: time = time(8, 0),
        title_template: str = DEFAULT_TITLE_TEMPLATE,
        description_template: str = DEFAULT_DESCRIPTION_TEMPLATE,
        title_no_age_template: str = DEFAULT_TITLE_NO_AGE_TEMPLATE,
        description_no_age_template: str = DEFAULT_DESCRIPTION_NO_AGE_TEMPLATE,
        event_category: str = 'Birthday',
        stamp: Optional[datetime] = None,
    ):
        self.calendar_name = calendar_name
        self.timezone_name = timezone_name
        self.tz = ZoneInfo(timezone_name)
        self.alarm_time = alarm_time
        self.title_template = title_template
        self.description_template = description_template
        self.title_no_age_template = title_no_age_template
        self.description_no_age_template = description_no_age_template
        self.event_category = event_category
        self.stamp = stamp

    @classmethod
    def from_config(cls, config: dict) -> 'FeedSynthesizer':
        """Create a synthesizer from ``get_feed_config()`` output"""
        return cls(
            calendar_name=config['calendar_name'],
            timezone_name=config['timezone'],
            alarm_time=config['alarm_time'],
            title_template=config['event_title_template'],
            description_template=config['event_description_template'],
            title_no_age_template=config['event_title_no_age_template'],
            description_no_age_template=config['event_description_no_age_template'],
            event_category=config['event_category'],
        )

    def _format(self, template: str, fallback: str, contact: ContactOccurrence) -> str:
        try:
            return template.format(name=contact.full_name, age=contact.age)
        except (KeyError, IndexError, ValueError, AttributeError) as e:
            logger.warning(f"Error formatting event text with template '{template}': {e}, using default")
            return fallback.format(name=contact.full_name, age=contact.age)

    def format_title(self, contact: ContactOccurrence) -> str:
        if contact.age is None:
            return self._format(self.title_no_age_template, DEFAULT_TITLE_NO_AGE_TEMPLATE, contact)
        return self._format(self.title_template, DEFAULT_TITLE_TEMPLATE, contact)

    def format_description(self, contact: ContactOccurrence) -> str:
        if contact.age is None:
            return self._format(self.description_no_age_template, DEFAULT_DESCRIPTION_NO_AGE_TEMPLATE, contact)
        return self._format(self.description_template, DEFAULT_DESCRIPTION_TEMPLATE, contact)

    def alarm_at(self, contact: ContactOccurrence) -> datetime:
        """Reminder trigger: the birthday at the alarm time in the feed's timezone, as UTC"""
        local = datetime.combine(contact.next_occurrence, self.alarm_time, tzinfo=self.tz)
        return local.astimezone(timezone.utc)

    def build_event(self, contact: ContactOccurrence) -> Event:
        start = contact.next_occurrence
        title = self.format_title(contact)

        event = Event()
        event.add('uid', make_uid(contact))
        event.add('dtstamp', self.stamp if self.stamp is not None else DEFAULT_STAMP)
        event.add('summary', title)
        event.add('description', self.format_description(contact))
        # all-day event: DTEND is exclusive
        event.add('dtstart', start)
        event.add('dtend', start + timedelta(days=1))
        event.add('status', 'CONFIRMED')
        event.add('categories', [self.event_category])

        alarm = Alarm()
        alarm.add('action', 'DISPLAY')
        alarm.add('description', title)
        alarm.add('trigger', self.alarm_at(contact), parameters={'VALUE': 'DATE-TIME'})
        event.add_component(alarm)
        return event

    def synthesize(self, contacts: Iterable[ContactOccurrence]) -> str:
        """Serialize the given contacts into an iCalendar document"""
        cal = Calendar()
        cal.add('prodid', PRODID)
        cal.add('version', '2.0')
        cal.add('calscale', 'GREGORIAN')
        cal.add('method', 'PUBLISH')
        cal.add('x-wr-calname', vText(self.calendar_name))
        cal.add('x-wr-timezone', vText(self.timezone_name))

        seen = set()
        for contact in contacts:
            uid = make_uid(contact)
            # the same contact may be stored in several address books
            if uid in seen:
                logger.debug(f"Dropping duplicate event for {contact.full_name} ({uid})")
                continue
            seen.add(uid)
            cal.add_component(self.build_event(contact))
        count = len(seen)

        logger.debug(f"Synthesized calendar '{self.calendar_name}' with {count} events")
        return cal.to_ical().decode('utf-8')
