"""
CardDAV client for fetching raw vCards
"""

import re
import logging
from typing import List
import requests
from requests.auth import HTTPBasicAuth, HTTPDigestAuth
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

PROPFIND_BODY = '''<?xml version="1.0" encoding="utf-8" ?>
<D:propfind xmlns:D="DAV:">
    <D:prop>
        <D:getetag />
        <D:getcontenttype />
        <D:resourcetype />
    </D:prop>
</D:propfind>'''


class FetchError(Exception):
    """The address book could not be reached or read"""


class CardDAVClient:
    """Client for reading contacts from CardDAV server"""

    def __init__(self, server_url: str, username: str, password: str, timeout: float = 10):
        self.server_url = server_url.rstrip('/')
        self.username = username
        self.timeout = timeout

        # Try both Basic and Digest auth
        self.basic_auth = HTTPBasicAuth(username, password)
        self.digest_auth = HTTPDigestAuth(username, password)
        self.auth = None

        self.addressbook_urls = []
        self._test_auth_and_discover()

    def _propfind(self, url: str, auth, body: str = None):
        headers = {'Depth': '1'}
        if body:
            headers['Content-Type'] = 'application/xml; charset=utf-8'
        return requests.request('PROPFIND', url, auth=auth, headers=headers,
                                data=body, timeout=self.timeout)

    def _test_auth_and_discover(self):
        """Test authentication and discover all addressbooks at the given URL"""
        logger.info(f"Discovering addressbooks at: {self.server_url} (user {self.username})")

        try:
            response = self._propfind(self.server_url, self.basic_auth)
            logger.debug(f"Basic auth response: {response.status_code}")

            if response.status_code in [200, 207]:
                self.auth = self.basic_auth
            elif response.status_code == 401:
                logger.debug("Basic auth failed, trying Digest authentication...")
                response = self._propfind(self.server_url, self.digest_auth)
                logger.debug(f"Digest auth response: {response.status_code}")

                if response.status_code in [200, 207]:
                    self.auth = self.digest_auth
                else:
                    raise FetchError(f"Authentication failed: {response.status_code}")
            else:
                raise FetchError(f"Unexpected response during discovery: {response.status_code}")
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Connection error: {e}") from e

        logger.debug(f"Discovery response: {response.text[:1000]}...")
        self.addressbook_urls = self._extract_addressbooks(response.text)

        if not self.addressbook_urls:
            # If no addressbooks found, maybe this URL IS an addressbook
            if self._is_addressbook(response.text):
                logger.info("Provided URL appears to be a single addressbook")
                self.addressbook_urls = [self.server_url]
            else:
                raise FetchError("No addressbooks found at the provided URL")

        logger.info(f"Discovered {len(self.addressbook_urls)} addressbooks")
        for ab_url in self.addressbook_urls:
            logger.debug(f"  - {ab_url}")

    def _extract_addressbooks(self, xml_response: str) -> List[str]:
        """Extract addressbook collection URLs from PROPFIND response"""
        addressbooks = []

        response_pattern = r'<d:response[^>]*>(.*?)</d:response>'
        responses = re.findall(response_pattern, xml_response, re.DOTALL | re.IGNORECASE)

        for response_block in responses:
            href_match = re.search(r'<d:href[^>]*>([^<]+)</d:href>', response_block, re.IGNORECASE)
            if not href_match:
                continue

            href = href_match.group(1).strip()
            if self._is_addressbook(response_block):
                full_url = self._resolve_url(href)
                # Skip the parent collection itself
                if full_url.rstrip('/') != self.server_url:
                    addressbooks.append(full_url)
                    logger.debug(f"Found addressbook: {full_url}")

        return addressbooks

    def _is_addressbook(self, xml_response: str) -> bool:
        """Check if the response indicates an addressbook collection"""
        lowered = xml_response.lower()
        return ('card:addressbook' in lowered or
                ('addressbook' in lowered and '<d:collection' in lowered))

    def get_records(self) -> List[str]:
        """Fetch the raw vCard text of every contact in all discovered addressbooks"""
        records = []

        for addressbook_url in self.addressbook_urls:
            logger.info(f"Processing addressbook: {addressbook_url}")
            vcards = self._get_records_from_addressbook(addressbook_url)
            records.extend(vcards)
            logger.info(f"Fetched {len(vcards)} vCards from this addressbook")

        logger.info(f"Total vCards across all addressbooks: {len(records)}")
        return records

    def _get_records_from_addressbook(self, addressbook_url: str) -> List[str]:
        """Fetch vCards from a specific addressbook"""
        try:
            response = self._propfind(addressbook_url, self.auth, PROPFIND_BODY)
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Error listing {addressbook_url}: {e}") from e

        if response.status_code not in [200, 207]:
            raise FetchError(f"Failed to list resources in {addressbook_url}: {response.status_code}")

        vcard_urls = self._extract_vcard_urls(response.text)
        if not vcard_urls:
            logger.debug("No vCard URLs found in this addressbook")
            return []

        records = []
        for i, vcard_url in enumerate(vcard_urls):
            full_url = self._resolve_url(vcard_url)
            logger.debug(f"Fetching vCard {i + 1}/{len(vcard_urls)} from: {full_url}")
            try:
                vcard_response = requests.get(full_url, auth=self.auth, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                logger.warning(f"Error fetching vCard {vcard_url}: {e}")
                continue

            if vcard_response.status_code != 200:
                logger.warning(f"Failed to fetch vCard {vcard_url}: {vcard_response.status_code}")
                continue

            text = vcard_response.text.strip()
            if not text.startswith('BEGIN:VCARD'):
                logger.debug(f"Ignoring non-vCard resource: {vcard_url}")
                continue
            records.append(text)

        return records

    def _extract_vcard_urls(self, xml_response: str) -> List[str]:
        """Extract vCard URLs from PROPFIND response"""
        urls = []

        vcf_pattern = r'<d:href[^>]*>([^<]*\.vcf)</d:href>'
        for url in re.findall(vcf_pattern, xml_response, re.IGNORECASE):
            url = url.strip()
            if url:
                urls.append(url)

        if urls:
            return urls

        # Servers that do not use the .vcf suffix: match hrefs with a vcard content type
        response_pattern = r'<d:response[^>]*>(.*?)</d:response>'
        for block in re.findall(response_pattern, xml_response, re.DOTALL | re.IGNORECASE):
            href_match = re.search(r'<d:href[^>]*>([^<]+)</d:href>', block, re.IGNORECASE)
            if not href_match:
                continue
            href = href_match.group(1).strip()
            if href.endswith('/'):
                continue
            if re.search(r'<d:getcontenttype[^>]*>[^<]*vcard', block, re.IGNORECASE):
                urls.append(href)

        logger.debug(f"Extracted {len(urls)} vCard URLs")
        return urls

    def _resolve_url(self, url: str) -> str:
        """Resolve relative URL to absolute URL"""
        if url.startswith('http'):
            return url
        elif url.startswith('/'):
            parsed = urlparse(self.server_url)
            return f"{parsed.scheme}://{parsed.netloc}{url}"
        else:
            return f"{self.server_url}/{url.lstrip('/')}"
