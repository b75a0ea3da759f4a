"""
Enrichment gateway: fetch the current state of the entity an event refers to.
"""
from requests.exceptions import RequestException

from jobber_agent.errors import EnrichmentError
from jobber_agent.jobber.api import JobberAPIError
from jobber_agent.logging_config import get_logger
from jobber_agent.models import EnrichedData, Event

logger = get_logger(__name__)

# Topic prefix -> JobberAPI fetch method
TOPIC_FETCHERS = {
    "JOB": "get_job",
    "CLIENT": "get_client",
    "QUOTE": "get_quote",
    "INVOICE": "get_invoice",
}

# Failures that mean "Jobber could not be reached or answered with errors".
# ValueError covers missing client credentials in the token provider.
FETCH_ERRORS = (RequestException, JobberAPIError, ValueError)


def topic_prefix(event: Event) -> str:
    return event.topic_name.split("_", 1)[0].upper()


class EnrichmentGateway:
    """Resolves an Event into EnrichedData using the Jobber API."""

    def __init__(self, client):
        self.client = client

    def enrich(self, event: Event) -> EnrichedData:
        """
        Fetch the entity for the event's topic.

        Raises:
            EnrichmentError: Jobber was unreachable or returned errors. Retryable.
        """
        prefix = topic_prefix(event)
        fetcher_name = TOPIC_FETCHERS.get(prefix)
        if fetcher_name is None:
            logger.warning("Unhandled webhook topic, skipping enrichment", topic=event.topic_name)
            return EnrichedData(event=event)

        logger.info("Enriching webhook event", topic=event.topic_name, item_id=event.item_id)
        try:
            entity = getattr(self.client, fetcher_name)(event.item_id)
        except FETCH_ERRORS as e:
            raise EnrichmentError(
                f"Failed to fetch {prefix.lower()} {event.item_id}: {e}",
                topic=event.topic_name,
                item_id=event.item_id,
            ) from e

        enriched = EnrichedData(event=event, entity=entity)
        if entity is None:
            logger.warning("Entity not found in Jobber", topic=event.topic_name, item_id=event.item_id)
            return enriched

        if prefix == "JOB":
            self._resolve_creator(enriched)
        return enriched

    def _resolve_creator(self, enriched: EnrichedData):
        """
        Attach the user roster and the user that triggered the event.

        Best effort: a roster failure leaves the creator unresolved.
        """
        event = enriched.event
        try:
            users = self.client.get_users()
        except FETCH_ERRORS as e:
            logger.warning("Could not fetch Jobber users, creator left unresolved",
                           item_id=event.item_id, error=str(e))
            return

        enriched.all_users = users
        enriched.created_by_user = next(
            (u for u in users if str(u.get("id")) == str(event.user_id)), None
        )
        if enriched.created_by_user is None:
            logger.info("Creator not found in user roster", user_id=event.user_id)
