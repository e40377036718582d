from crawler.extractors.base_extractor import BaseExtractor


class NovelFireExtractor(BaseExtractor):
    """
    Extractor for NovelFire.

    Site URL: https://novelfire.net/
    Landing pages look like /book/<slug>, chapters like /book/<slug>/chapter-<n>.
    """

    name = "novelfire"

    def _text(self, response, selector):
        return self.clean_text(' '.join(response.css(f'{selector} ::text').getall()))

    def extract_novel_metadata(self, response) -> dict:
        """Extract novel metadata from novelfire.net structure."""
        rank = self._text(response, '.rank strong')
        if rank:
            rank = rank.replace('RANK', '', 1).strip() or None

        chapters_url = response.css('a.chapter-latest-container::attr(href)').get()
        if chapters_url:
            chapters_url = response.urljoin(chapters_url)

        image_url = (
            response.css('figure.cover img.lazy::attr(data-src)').get()
            or response.css('figure.cover img.lazy::attr(src)').get()
        )
        if image_url:
            image_url = response.urljoin(image_url)

        genres = [
            g.strip() for g in response.css('.categories ul a::text').getall() if g.strip()
        ]

        return {
            'title': self._text(response, 'h1.novel-title'),
            'author': self.clean_text(
                response.css('.author a span[itemprop="author"]::text').get()
            ),
            'rank': rank,
            'total_chapters': self._text(response, '.header-stats span:nth-child(1) strong'),
            'views': self._text(response, '.header-stats span:nth-child(2) strong'),
            'bookmarks': self._text(response, '.header-stats span:nth-child(3) strong'),
            'status': self._text(response, '.header-stats span:nth-child(4) strong'),
            'genres': genres,
            'summary': self._text(response, '.summary .introduce .inner'),
            'chapters_url': chapters_url,
            'image_url': image_url,
        }

    def extract_chapter(self, response) -> dict:
        """Extract chapter title and raw body HTML."""
        return {
            'title': self._text(response, '.wrap > h1'),
            'content': response.css('#content').get(),
        }
