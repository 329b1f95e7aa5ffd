"""
Tests for processor.py - per-page strategy chain, harvesting and global fallback.
"""
LISTING = "https://fund.com/portfolio"
ACME = "https://fund.com/portfolio/acme"


def _scraped(url, **kwargs):
    from schema import ScrapedPage

    return ScrapedPage(url=url, **kwargs)


def _methods(scored):
    return [v.method for _, v in scored]


class TestStructuredExtraction:
    """Tier 1: schema-guided extraction through the renderer."""

    def test_detail_fields_filled_and_cached(self, make_renderer, make_ctx):
        from classifier import DETAIL
        from processor import extract_page

        renderer = make_renderer(scrapes={
            ACME: _scraped(ACME, markdown="CEO: Jane Doe\n", extracted={
                "company_name": "Acme Robotics", "industry": "Robotics",
            }),
        })
        ctx = make_ctx(renderer)

        result = extract_page(ctx, ACME, DETAIL)

        assert result.ok
        record, validation = result.scored[0]
        assert record.name == "Acme Robotics"
        assert record.industry == "Robotics"
        assert record.ceo == "Jane Doe"
        assert validation.method == "ai-detail"
        assert validation.confidence == 25
        assert renderer.scrape_calls == [(ACME, True)]

        again = extract_page(ctx, ACME, DETAIL)
        assert again.scored[0][0].ceo == "Jane Doe"
        assert len(renderer.scrape_calls) == 1
        assert ctx.stats.cache_hits == 1
        assert ctx.stats.cache_misses == 1

    def test_listing_page_text_not_copied_into_records(self, make_renderer, make_ctx):
        from classifier import LISTING as LISTING_KIND
        from processor import extract_page

        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, markdown="CEO: Jane Doe\n", extracted={"investments": [
                {"company_name": "Acme Robotics"},
                {"company_name": "Beta Labs"},
                {"company_name": "Gamma Health", "investment_role": "Lead Investor"},
            ]}),
        })
        result = extract_page(make_ctx(renderer), LISTING, LISTING_KIND)

        records = [r for r, _ in result.scored]
        assert [r.name for r in records] == ["Acme Robotics", "Beta Labs", "Gamma Health"]
        assert all(r.ceo is None for r in records)
        assert records[2].ownership == "Majority stake"
        assert set(_methods(result.scored)) == {"ai-listing"}


class TestFallbackTiers:
    """Tiers 2-4 when structured extraction is unavailable."""

    def test_crawl_page_used_when_scrape_fails(self, make_renderer, make_ctx):
        from classifier import DETAIL
        from processor import extract_page
        from schema import PageDoc

        renderer = make_renderer()
        ctx = make_ctx(renderer)
        crawl_page = PageDoc(url=ACME, html="<h1>Acme Robotics</h1><p>CEO: Jane Doe</p>")

        result = extract_page(ctx, ACME, DETAIL, crawl_page)

        record, validation = result.scored[0]
        assert record.name == "Acme Robotics"
        assert record.ceo == "Jane Doe"
        assert validation.method == "fallback-html"
        assert ctx.health.get(ACME).failure_count == 1

    def test_structured_error_falls_through_to_crawl_html(self, make_renderer, make_ctx):
        """Any structured-call failure still lets the HTML tier read the crawl payload."""
        from classifier import LISTING as LISTING_KIND
        from processor import extract_page
        from schema import PageDoc
        from tenacity import RetryError

        names = ["Acme Robotics", "Beta Labs", "Gamma Health", "Delta Foods", "Epsilon Energy"]
        rows = "".join(f'<div class="portfolio-item"><h3>{n}</h3></div>' for n in names)
        renderer = make_renderer(scrapes={LISTING: RetryError(None)})
        crawl_page = PageDoc(url=LISTING, html=rows)

        result = extract_page(make_ctx(renderer), LISTING, LISTING_KIND, crawl_page)

        assert [r.name for r, _ in result.scored] == names
        assert set(_methods(result.scored)) == {"fallback-html"}

    def test_no_content_anywhere(self, make_renderer, make_ctx):
        from classifier import DETAIL
        from processor import extract_page

        result = extract_page(make_ctx(make_renderer()), ACME, DETAIL)
        assert not result.ok

    def test_image_grid_floor(self, make_renderer, make_ctx):
        """Names the winning tier missed are appended from the logo grid."""
        from classifier import LISTING as LISTING_KIND
        from processor import extract_page

        names = ["Acme Robotics", "Beta Labs", "Gamma Health", "Delta Foods", "Epsilon AI"]
        grid = "\n\n".join(f"![logo](https://cdn.fund.com/{i}.png)\n\n{n}" for i, n in enumerate(names))
        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, markdown=grid, extracted={"investments": [
                {"company_name": "Acme Robotics", "industry": "Robotics"},
            ]}),
        })

        result = extract_page(make_ctx(renderer), LISTING, LISTING_KIND)

        assert [r.name for r, _ in result.scored] == names
        assert _methods(result.scored) == ["ai-listing"] + ["image-grid"] * 4

    def test_unhealthy_domain_skips_renderer(self, make_renderer, make_ctx):
        from classifier import DETAIL
        from processor import extract_page
        from schema import PageDoc

        renderer = make_renderer(scrapes={ACME: _scraped(ACME, extracted={"company_name": "Acme"})})
        ctx = make_ctx(renderer)
        for _ in range(3):
            ctx.health.record_failure("https://fund.com/portfolio/other", "503")

        crawl_page = PageDoc(url=ACME, html="<h1>Acme Robotics</h1>")
        result = extract_page(ctx, ACME, DETAIL, crawl_page)

        assert renderer.scrape_calls == []
        assert result.scored[0][0].name == "Acme Robotics"


class TestHarvest:
    """Link harvesting on under-yielding listing pages."""

    def test_internal_detail_pages_followed(self, make_renderer, make_ctx):
        from classifier import LISTING as LISTING_KIND
        from errors import ProtocolError
        from processor import extract_page

        listing_html = (
            '<a href="/portfolio/acme"><img src="a.png"></a>'
            '<a href="/portfolio/beta"><img src="b.png"></a>'
        )
        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, html=listing_html),
            ACME: _scraped(ACME, markdown="Partnered since 2022", extracted={"company_name": "Acme Robotics"}),
            "https://fund.com/portfolio/beta": ProtocolError("HTTP 500"),
        })

        result = extract_page(make_ctx(renderer), LISTING, LISTING_KIND)

        assert len(result.scored) == 1
        record, validation = result.scored[0]
        assert record.name == "Acme Robotics"
        assert record.source_url == LISTING
        assert record.portfolio_url == ACME
        assert record.status == "Current"
        assert "status" in record.inferred_fields
        assert validation.method == "harvested-internal"

    def test_external_sites_followed(self, make_renderer, make_ctx):
        from classifier import LISTING as LISTING_KIND
        from processor import extract_page

        listing_html = '<div><a href="https://acme-robotics.com">Acme Robotics</a></div>'
        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, html=listing_html),
            "https://acme-robotics.com": _scraped(
                "https://acme-robotics.com", html="<h1>Acme Robotics</h1>", description="Warehouse robots.",
            ),
        })

        result = extract_page(make_ctx(renderer), LISTING, LISTING_KIND)

        record, validation = result.scored[0]
        assert record.name == "Acme Robotics"
        assert record.website == "https://acme-robotics.com"
        assert record.description == "Warehouse robots."
        assert record.source_url == LISTING
        assert validation.method == "harvested-external"


class TestGlobalFallback:
    def test_title_record_at_low_confidence(self, make_renderer, make_ctx):
        from processor import global_fallback

        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, html="<p>Nothing to see</p>", title="Ironbridge Equity Partners"),
        })
        scored = global_fallback(make_ctx(renderer))

        assert len(scored) == 1
        record, validation = scored[0]
        assert record.name == "Ironbridge Equity Partners"
        assert validation.method == "global-fallback-title"
        assert validation.confidence == 20

    def test_harvested_links(self, make_renderer, make_ctx):
        from processor import global_fallback

        renderer = make_renderer(scrapes={
            LISTING: _scraped(LISTING, html='<a href="/portfolio/acme">more</a>', title="Fund"),
            ACME: _scraped(ACME, html="<h1>Acme Robotics</h1>"),
        })
        scored = global_fallback(make_ctx(renderer))

        assert [r.name for r, _ in scored] == ["Acme Robotics"]
        assert _methods(scored) == ["global-fallback-harvest"]
        assert scored[0][0].source_url == LISTING
        assert scored[0][0].portfolio_url == ACME

    def test_seed_unreachable(self, make_renderer, make_ctx):
        from processor import global_fallback

        assert global_fallback(make_ctx(make_renderer())) == []
