"""
casrest Response Parser

Decodes CAS 2.0 / 3.0 serviceValidate documents into a ValidationOutcome.

Accepted document shapes:
1) <cas:authenticationSuccess> with <cas:user> and an optional
   <cas:attributes> block of <cas:{name}>{value}</cas:{name}> children
   (names may repeat; values keep document order)
2) Attributes written as <cas:attribute name=".." value=".."/> children of
   <cas:authenticationSuccess> or <cas:attributes>
3) Legacy CAS 2.0 servers that place <cas:{name}> elements directly under
   <cas:authenticationSuccess>
4) <cas:authenticationFailure code="..">description</cas:authenticationFailure>

CAS 1.0 plain text is not handled here; the validator owns that format.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

import attrs
import structlog
from dateutil.parser import isoparse

from casrest.core.exceptions import AuthenticationFailure, ParseError
from casrest.core.types import AuthenticationResponse, ValidationOutcome
from casrest.protocol.types import CAS_NAMESPACE, ResponseMode

logger = structlog.get_logger()

NS = {"cas": CAS_NAMESPACE}

# Children of <cas:authenticationSuccess> that are not attributes.
_STRUCTURAL_ELEMENTS = frozenset({"user", "attributes", "proxyGrantingTicket", "proxies"})


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text(element: ET.Element) -> str:
    return (element.text or "").strip()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _parse_authentication_date(value: str) -> datetime:
    """
    Parse a CAS 3.0 authenticationDate.

    Examples:
        "2024-01-15T10:30:45Z"
        "2024-01-15T10:30:45.123+01:00[Europe/Paris]"
        "2024-01-15T10:30:45.123456789Z[UTC]"  (Java nanoseconds)

    Fractions longer than microseconds are truncated.
    """
    cleaned = value.strip()
    if "[" in cleaned:
        cleaned = cleaned[: cleaned.index("[")]
    try:
        return isoparse(cleaned)
    except (ValueError, OverflowError) as e:
        raise ParseError(f"Invalid authenticationDate {value!r}") from e


@attrs.define
class _AttributeCollector:
    """Folds repeated attribute names into ordered value lists."""

    values: Dict[str, List[str]] = attrs.Factory(dict)

    def add(self, name: str, value: str) -> None:
        self.values.setdefault(name, []).append(value)

    def add_element(self, element: ET.Element) -> None:
        name = _local_name(element.tag)
        if name == "attribute" and "name" in element.attrib:
            self.add(element.attrib["name"], element.attrib.get("value", ""))
        else:
            self.add(name, _text(element))

    def pop(self, name: str) -> List[str]:
        return self.values.pop(name, [])

    def frozen(self) -> Dict[str, Tuple[str, ...]]:
        return {name: tuple(values) for name, values in self.values.items()}


@attrs.define(frozen=True, slots=True)
class ResponseParser:
    """
    Parser for CAS serviceValidate responses.

    Example:
        outcome = ResponseParser().parse(body)
        if outcome.is_success:
            print(outcome.response.user, outcome.response.attributes)
    """

    def parse(
        self,
        body: Union[str, bytes],
        mode: ResponseMode = ResponseMode.XML,
    ) -> ValidationOutcome:
        """
        Parse a validation response body.

        Returns:
            ValidationOutcome.success for <cas:authenticationSuccess>
            ValidationOutcome.failure(AuthenticationFailure) for
            <cas:authenticationFailure>
            ValidationOutcome.failure(ParseError) for anything else

        Raises:
            ValueError: If called with ResponseMode.TEXT
        """
        if mode != ResponseMode.XML:
            raise ValueError("ResponseParser only handles XML responses; CAS 1.0 text is parsed by the validator")

        try:
            return self._parse_xml(body)
        except ParseError as e:
            logger.warning("cas_response_parse_failed", error=e.message)
            return ValidationOutcome.failure(e)

    def _parse_xml(self, body: Union[str, bytes]) -> ValidationOutcome:
        # bytes go to expat undecoded so the XML declaration picks the encoding
        try:
            root = ET.fromstring(body.strip())
        except ET.ParseError as e:
            raise ParseError(f"Malformed CAS response: {e}") from e

        if root.tag != f"{{{CAS_NAMESPACE}}}serviceResponse":
            raise ParseError(f"Unexpected root element {root.tag!r}")

        failure = root.find("cas:authenticationFailure", NS)
        if failure is not None:
            error = AuthenticationFailure(
                code=failure.get("code", "").strip() or "UNKNOWN",
                description=_text(failure),
            )
            logger.info("cas_authentication_failure", code=error.code, description=error.description)
            return ValidationOutcome.failure(error)

        success = root.find("cas:authenticationSuccess", NS)
        if success is None:
            raise ParseError("Response has neither authenticationSuccess nor authenticationFailure")

        response = self._parse_success(success)
        logger.info("cas_response_parsed", user=response.user, attributes=len(response.attributes))
        return ValidationOutcome.success(response)

    def _parse_success(self, success: ET.Element) -> AuthenticationResponse:
        user_element = success.find("cas:user", NS)
        user = _text(user_element) if user_element is not None else ""
        if not user:
            raise ParseError("authenticationSuccess without a user")

        collector = _AttributeCollector()

        attributes = success.find("cas:attributes", NS)
        if attributes is not None:
            for element in attributes:
                collector.add_element(element)

        for element in success:
            if _local_name(element.tag) not in _STRUCTURAL_ELEMENTS:
                collector.add_element(element)

        authentication_date: Optional[datetime] = None
        dates = collector.pop("authenticationDate")
        if dates:
            authentication_date = _parse_authentication_date(dates[0])

        new_login = collector.pop("isFromNewLogin")
        remembered = collector.pop("longTermAuthenticationRequestTokenUsed")
        member_of = collector.pop("memberOf")

        return AuthenticationResponse(
            user=user,
            attributes=collector.frozen(),
            authentication_date=authentication_date,
            is_new_login=bool(new_login) and _parse_bool(new_login[0]),
            is_remembered_login=bool(remembered) and _parse_bool(remembered[0]),
            member_of=member_of,
        )


def parse_service_response(body: Union[str, bytes]) -> ValidationOutcome:
    """Parse a serviceValidate XML body with a default ResponseParser."""
    return ResponseParser().parse(body, ResponseMode.XML)
