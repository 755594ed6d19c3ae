"""Wikipedia lead-image lookup for talent names."""
import logging
import time
from typing import List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup
import requests

logger = logging.getLogger(__name__)

# Known aliases for names on the current roster
NAME_ALIASES = {
    'lalo garza': ['Eduardo Garza (voice actor)', 'Eduardo Garza'],
    'laura torres': ['Laura Torres (actress)', 'Laura Torres (actriz de voz)'],
    'geraldo': ['Gerardo Reyero'],
    'gerardo reyero': ['Gerardo Reyero'],
    'rene garcia': ['René García (actor)'],
    'rené garcía': ['René García (actor)'],
    'mario castañeda': ['Mario Castañeda'],
    'mario castaneda': ['Mario Castañeda'],
    'luis manuel ávila': ['Luis Manuel Ávila'],
    'luis manuel avila': ['Luis Manuel Ávila'],
    'carlos segundo': ['Carlos Segundo'],
}

DISAMBIGUATIONS = ['voice actor', 'actor', 'actriz de voz', 'actor de voz']


class WikiImageScraper:
    """Finds a representative image for a person on Wikipedia."""

    API_URL = "https://{lang}.wikipedia.org/w/api.php"
    PAGE_URL = "https://{lang}.wikipedia.org/wiki/{title}"
    LANGUAGES = ('en', 'es')

    def __init__(self, timeout: int = 30, max_retries: int = 3):
        """
        Initialize the image scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per request before giving up (default: 3)
        """
        self.timeout = timeout
        self.max_retries = max_retries

    def name_variants(self, name: str) -> List[str]:
        """
        Build the page titles worth trying for a name.

        Args:
            name: Talent name as entered

        Returns:
            Ordered, de-duplicated list of candidate titles
        """
        variants = [name]
        lower = name.lower()
        for alias_key, aliases in NAME_ALIASES.items():
            if alias_key in lower:
                variants.extend(aliases)
        variants.extend(f"{name} ({suffix})" for suffix in DISAMBIGUATIONS)

        # Preserve order while dropping duplicates
        return list(dict.fromkeys(variants))

    def find_best_image(self, name: str) -> Optional[str]:
        """
        Resolve a name to an image URL.

        Tries direct title lookups, then search lookups for every variant,
        then a raw name search, then the og:image of the page itself.

        Args:
            name: Talent name

        Returns:
            Image URL or None if nothing was found
        """
        candidates = self.name_variants(name)

        for lang in self.LANGUAGES:
            for title in candidates:
                url = self.fetch_direct(title, lang)
                if url:
                    return url

        for lang in self.LANGUAGES:
            for title in candidates:
                url = self.fetch_search(title, lang)
                if url:
                    return url

        for lang in self.LANGUAGES:
            url = self.fetch_search(name, lang)
            if url:
                return url

        for lang in self.LANGUAGES:
            url = self.fetch_page_og_image(name, lang)
            if url:
                return url

        logger.info(f"No image found for '{name}'")
        return None

    def fetch_direct(self, title: str, lang: str) -> Optional[str]:
        """Look up the original lead image of a page by exact title."""
        params = {
            'action': 'query',
            'titles': title,
            'prop': 'pageimages',
            'piprop': 'original',
            'redirects': '1',
            'format': 'json',
        }
        return self._first_image(self._get_json(self.API_URL.format(lang=lang), params))

    def fetch_search(self, query: str, lang: str) -> Optional[str]:
        """Look up the lead image of the top search hit for a query."""
        params = {
            'action': 'query',
            'generator': 'search',
            'gsrsearch': query,
            'gsrlimit': '1',
            'prop': 'pageimages',
            'piprop': 'original',
            'format': 'json',
        }
        return self._first_image(self._get_json(self.API_URL.format(lang=lang), params))

    def fetch_page_og_image(self, title: str, lang: str) -> Optional[str]:
        """Read the og:image meta tag from the rendered article."""
        url = self.PAGE_URL.format(lang=lang, title=quote(title.replace(' ', '_')))
        response = self._get(url)
        if response is None:
            return None

        soup = BeautifulSoup(response.text, 'html.parser')
        meta = soup.find('meta', attrs={'property': 'og:image'})
        if meta and meta.get('content'):
            return meta['content']
        return None

    def _first_image(self, data: Optional[dict]) -> Optional[str]:
        if not data:
            return None
        pages = (data.get('query') or {}).get('pages') or {}
        for page in pages.values():
            source = (page.get('original') or {}).get('source')
            if source:
                return source
        return None

    def _get_json(self, url: str, params: dict) -> Optional[dict]:
        response = self._get(url, params)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(f"Invalid JSON from {url}")
            return None

    def _get(self, url: str, params: Optional[dict] = None) -> Optional[requests.Response]:
        """
        GET with retry and exponential backoff.

        Args:
            url: Request URL
            params: Query parameters

        Returns:
            Response, or None if all attempts failed
        """
        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                response = requests.get(url, params=params, timeout=self.timeout)
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return response

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
        return None
