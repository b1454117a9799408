import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

import requests

from talentscout.core.errors import UpstreamDegraded
from talentscout.core.models import EnrichedProfile, ProfileIdentity
from talentscout.core.timeutil import to_naive_utc

logger = logging.getLogger(__name__)

OPEN_TO_WORK_MARKERS = ('open to work', 'opentowork', 'open to new opportunities', 'open to opportunities')


class PDLProfileLookup:
    """
    Profile-lookup client backed by the People Data Labs person-enrichment API.

    `lookup` raises UpstreamDegraded for every failure mode (missing key, 404,
    HTTP or network errors, unusable payloads); the request scheduler turns
    that into a degraded profile.
    """

    def __init__(self, api_key: str, base_url: str = "https://api.peopledatalabs.com/v5",
                 timeout: int = 30, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if not self.api_key:
            logger.warning("PDLProfileLookup initialized without an API key; every lookup will degrade.")

    async def lookup(self, identity: ProfileIdentity) -> EnrichedProfile:
        data = await asyncio.to_thread(self._enrich_sync, identity)
        return self.profile_from_response(identity, data)

    def _enrich_sync(self, identity: ProfileIdentity) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamDegraded("PDL API key not configured")

        first_name, last_name = self._conservative_name_split(identity.name)
        params = {}
        if first_name:
            params["first_name"] = first_name
        if last_name:
            params["last_name"] = last_name
        if identity.company:
            params["company"] = identity.company
        if identity.title:
            params["title"] = identity.title
        if identity.profile_url:
            params["profile"] = identity.profile_url
        if identity.email:
            params["email"] = identity.email

        try:
            response = self.session.get(
                f"{self.base_url}/person/enrich",
                params=params,
                headers={"X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
            if response.status_code == 404:
                raise UpstreamDegraded(f"No profile match for {identity.name}")
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as e:
            raise UpstreamDegraded(f"PDL HTTP error: {e.response.status_code}") from e
        except requests.RequestException as e:
            raise UpstreamDegraded(f"PDL request failed: {e}") from e
        except ValueError as e:
            raise UpstreamDegraded("PDL returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise UpstreamDegraded(f"Unexpected PDL payload type: {type(data).__name__}")
        return data

    @staticmethod
    def _conservative_name_split(full_name: str) -> Tuple[str, str]:
        """Splits a full name into first and last name parts."""
        parts = full_name.strip().split()
        if len(parts) == 0:
            return "", ""
        if len(parts) == 1:
            return "", parts[0]
        return " ".join(parts[:-1]), parts[-1]

    @classmethod
    def profile_from_response(cls, identity: ProfileIdentity, resp: Dict[str, Any]) -> EnrichedProfile:
        person = resp.get("data") if isinstance(resp.get("data"), dict) else resp
        if not isinstance(person, dict) or not person:
            raise UpstreamDegraded("PDL response carried no person data")

        headline = person.get("headline") or person.get("job_title")
        summary = person.get("summary") or ""
        text = f"{headline or ''} {summary}".lower()

        skills = person.get("skills")
        skills = tuple(str(s) for s in skills if s) if isinstance(skills, list) else ()

        signals = [summary] if summary else []
        interests = person.get("interests")
        if isinstance(interests, list):
            signals.extend(str(i) for i in interests if i)

        connections = person.get("linkedin_connections")

        return EnrichedProfile(
            name=person.get("full_name") or identity.name,
            headline=headline,
            current_company=person.get("job_company_name") or None,
            skills=skills,
            open_to_work=any(marker in text for marker in OPEN_TO_WORK_MARKERS),
            last_activity=cls._parse_timestamp(person.get("job_last_updated") or person.get("last_updated")),
            recent_signals=tuple(signals[:3]),
            profile_url=cls._linkedin_url(person) or identity.profile_url,
            connections=connections if isinstance(connections, int) else None,
        )

    @staticmethod
    def _parse_timestamp(value: Any) -> Optional[datetime]:
        if isinstance(value, datetime):
            return to_naive_utc(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if not isinstance(value, str) or not value:
            return None
        try:
            return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            logger.debug("Unparseable PDL timestamp: %r", value)
            return None

    @staticmethod
    def _linkedin_url(person: Dict[str, Any]) -> Optional[str]:
        url = person.get("linkedin_url")
        if isinstance(url, str) and url:
            url = url.strip()
            if not url.startswith(('http://', 'https://')):
                url = 'https://' + url
            return url.split('?')[0].rstrip('/')
        return None
