"""Assembles the per-request system context sent with every chat completion.

The order is fixed:

1. the static instruction template, verbatim;
2. one block per scraped page (source order), text cut to ``excerpt_chars``,
   followed by its structured listings if it has any;
3. the booking-link instructions;
4. either the free Calendly slots with how to present them, or the
   instruction to offer the booking link without specific times.

Only the page excerpts are bounded; the total size is not capped.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.config import CONTENT_EXCERPT_CHARS
from src.models import CachedContent, Listing

CONTENT_HEADER = "AKTUELLE WEBSITE-INHALTE:"
SLOT_SEPARATOR = "; "

NO_SLOTS_DIRECTIVE = (
    "Hinweis: Keine aktuellen Slots von Calendly geladen. Bei Vorgespräch/Termin "
    "trotzdem den Calendly-Buchungslink anbieten (siehe TERMINBUCHUNG), NICHT das "
    "Kontaktformular. Vorgespräche finden nur donnerstags statt."
)
SLOTS_HEADER = "VERFÜGBARE TERMINE (von Calendly, nächste 7 Tage; Vorgespräche nur donnerstags): "
SLOTS_DIRECTIVE = (
    ". PFLICHT bei Fragen wie \"Wann habt ihr Zeit\" oder \"Vorgespräch\": "
    "(1) Diese konkreten Zeiten in der Antwort nennen (z. B. als Aufzählung). "
    "(2) Den Calendly-Buchungslink anbieten. "
    "(3) Kurz hinweisen: Vorgespräche nur donnerstags; Slots können inzwischen "
    "vergeben sein – bitte über den Link buchen. NICHT das Kontaktformular empfehlen."
)


def _listing_line(index: int, listing: Listing) -> str:
    line = f"{index}. UNTERNEHMEN: {listing.name}"
    if listing.status:
        line += f" - Status: {listing.status}"
    if listing.date:
        line += f" - Datum: {listing.date}"
    if listing.description:
        line += f" - Beschreibung: {listing.description}"
    if listing.price:
        line += f" - Preis: {listing.price}"
    return line


def _page_block(page: CachedContent, excerpt_chars: int) -> str:
    block = (
        f"URL: {page.source_url}\n"
        f"Titel: {page.title}\n"
        f"Inhalt: {page.text[:excerpt_chars]}...\n\n"
    )
    if page.listings:
        block += f"AKTUELLE UNTERNEHMENSANGEBOTE ({len(page.listings)} Angebote):\n"
        block += "".join(
            _listing_line(i, listing) + "\n" for i, listing in enumerate(page.listings, 1)
        )
        block += "\nWICHTIG: Verwende diese aktuellen Unternehmensangebote in deinen Antworten!\n\n"
    return block


def booking_block(booking_url: str) -> str:
    return (
        "TERMINBUCHUNG (Calendly): Bei Vorgespräch/Terminwunsch IMMER diesen Link "
        "anbieten, NIEMALS das Kontaktformular. Link in Antwort einbinden: "
        f'<a href="{booking_url}" target="_blank">Hier können Sie einen freien Termin buchen</a>. '
        f"URL: {booking_url}"
    )


def availability_block(available_times: Sequence[str]) -> str:
    if not available_times:
        return NO_SLOTS_DIRECTIVE
    return SLOTS_HEADER + SLOT_SEPARATOR.join(available_times) + SLOTS_DIRECTIVE


def build_context(
    template: str,
    pages: Sequence[CachedContent],
    available_times: Sequence[str],
    *,
    booking_url: str,
    excerpt_chars: int = CONTENT_EXCERPT_CHARS,
) -> str:
    """Merge the template, page extracts and availability into one prompt."""
    parts = [template, "\n\n", CONTENT_HEADER, "\n"]
    parts.extend(_page_block(page, excerpt_chars) for page in pages)
    parts.extend(["\n\n", booking_block(booking_url)])
    parts.extend(["\n\n", availability_block(available_times)])
    return "".join(parts)
