"""
Apify Google Maps scraper — start the actor, relay its log, collect the places.

The actor is started without blocking so its log can be streamed while we
wait on the run. The log is pumped on a daemon thread; the calling thread
blocks in wait_for_finish().
"""
import codecs
import logging
import threading
from typing import Dict, List, Any, Iterable, Iterator, Optional, Union

from apify_client import ApifyClient

from app.config import GOOGLE_MAPS_SCRAPER_ACTOR, SCRAPE_LANGUAGE, NEIGHBORHOODS
from app.pipeline.relay import LogRelay

logger = logging.getLogger('services.apify')

LOG_JOIN_TIMEOUT_SECS = 10


def build_search_strings(search_query: str, city: str, qualifiers: Optional[List[str]] = None) -> List[str]:
    """
    One search string per sub-locality qualifier, or just the query when
    there are none (the actor then scopes by locationQuery).
    """
    if qualifiers:
        return [f"{search_query} {q} {city}" for q in qualifiers]
    return [search_query]


def resolve_neighborhoods(indices: Iterable[Any]) -> List[str]:
    """Map neighborhood indices onto names; out-of-range or junk entries are dropped."""
    names = []
    for idx in indices or []:
        if isinstance(idx, bool) or not isinstance(idx, int):
            continue
        if 0 <= idx < len(NEIGHBORHOODS):
            names.append(NEIGHBORHOODS[idx])
    return names


def iter_lines(chunks: Iterable[Union[bytes, str]]) -> Iterator[str]:
    """
    Split a chunked log stream into lines.

    A line cut across chunks is held until its newline arrives. Blank lines
    are dropped. Whatever is left when the stream ends is emitted if it is not
    blank.
    """
    decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
    partial = ''
    for chunk in chunks:
        partial += decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        lines = partial.split('\n')
        partial = lines.pop()
        for line in lines:
            line = line.rstrip('\r')
            if line.strip():
                yield line
    partial += decoder.decode(b'', final=True)
    if partial.strip():
        yield partial.rstrip('\r')


class GoogleMapsScraper:
    """
    Thin wrapper around the Google Maps scraper actor.

    Usage:
        scraper = GoogleMapsScraper(token)
        places = scraper.scrape(['pizza'], 'Tirana', 50, relay)
    """

    def __init__(self, token: str, actor_id: str = GOOGLE_MAPS_SCRAPER_ACTOR, client: ApifyClient = None):
        self.actor_id = actor_id
        self.client = client or ApifyClient(token)

    @staticmethod
    def build_input(search_strings: List[str], location: str, max_places: int) -> Dict[str, Any]:
        return {
            'includeWebResults': False,
            'language': SCRAPE_LANGUAGE,
            'locationQuery': location,
            'maxCrawledPlacesPerSearch': max_places,
            'maxImages': 1,
            'maximumLeadsEnrichmentRecords': 0,
            'scrapeContacts': True,
            'scrapeDirectories': False,
            'scrapeImageAuthors': False,
            'scrapePlaceDetailPage': True,
            'scrapeReviewsPersonalData': False,
            # Paid per profile, so all off
            'scrapeSocialMediaProfiles': {
                'facebooks': False,
                'instagrams': False,
                'tiktoks': False,
                'twitters': False,
                'youtubes': False,
            },
            'scrapeTableReservationProvider': False,
            'searchStringsArray': search_strings,
            'skipClosedPlaces': False,
        }

    def start(self, search_strings: List[str], location: str, max_places: int) -> Dict[str, Any]:
        run_input = self.build_input(search_strings, location, max_places)
        return self.client.actor(self.actor_id).start(run_input=run_input)

    def stream_log(self, run_id: str) -> Iterator[str]:
        with self.client.run(run_id).log().stream() as response:
            if response is None:
                return
            yield from iter_lines(response.iter_bytes())

    def wait_for_finish(self, run_id: str) -> Dict[str, Any]:
        return self.client.run(run_id).wait_for_finish() or {}

    def fetch_results(self, dataset_id: str) -> List[Dict[str, Any]]:
        return list(self.client.dataset(dataset_id).iterate_items())

    def scrape(self, search_strings: List[str], location: str, max_places: int,
               relay: LogRelay = None) -> List[Dict[str, Any]]:
        """
        Run the actor to completion and return its dataset.

        A run that ends in anything other than SUCCEEDED is reported but its
        (possibly partial) results are still returned. Failures to start the
        actor or read the dataset propagate.
        """
        relay = relay or LogRelay()

        relay.publish(" Starting Google Maps Scraper actor...")
        relay.publish(f" Search queries: {', '.join(search_strings)}")

        run = self.start(search_strings, location, max_places)
        run_id = run['id']
        relay.publish(f" Run started ({run_id}). Streaming logs...")

        pump = threading.Thread(
            target=self._pump_log,
            args=(run_id, relay),
            name=f'actor-log-{run_id[:8]}',
            daemon=True,
        )
        pump.start()

        finished = self.wait_for_finish(run_id)
        status = finished.get('status')
        if status != 'SUCCEEDED':
            relay.publish(f" Actor run ended with status: {status}", 'error')

        # The platform closes the log stream when the run ends
        pump.join(timeout=LOG_JOIN_TIMEOUT_SECS)
        if pump.is_alive():
            logger.warning("Actor log stream for %s still open after %ss", run_id, LOG_JOIN_TIMEOUT_SECS)

        relay.publish(" Actor run completed. Fetching results...")
        items = self.fetch_results(finished.get('defaultDatasetId') or run['defaultDatasetId'])
        relay.publish(f" Found {len(items)} places", 'success')
        return items

    def _pump_log(self, run_id: str, relay: LogRelay):
        try:
            for line in self.stream_log(run_id):
                relay.publish(f"[ACTOR] {line}", 'info')
        except Exception as e:
            logger.warning("Actor log stream for %s broke: %s", run_id, e)
