"""
Tests for link_harvester.py - internal/external company links on listing pages.
"""
import pytest

BASE = "https://fund.com/portfolio"


class TestHarvestLinks:
    """Tests for harvest_links."""

    def test_splits_internal_and_external(self):
        from link_harvester import harvest_links

        html = """
        <a href="/portfolio/acme?ref=nav">Acme</a>
        <a href="/portfolio/">All companies</a>
        <a href="https://fund.com/portfolio/beta#top">Beta</a>
        <a href="https://acme-robotics.com/">Acme Robotics</a>
        <a href="https://fund-social.com/x">Contact Us Today</a>
        <a href="mailto:deals@fund.com">Email</a>
        <a href="//cdn.fund.com/logo.png">Logo</a>
        <a href="/portfolio/acme">Acme again</a>
        """
        result = harvest_links(html, BASE)

        assert result.internal == [
            "https://fund.com/portfolio/acme",
            "https://fund.com/portfolio/beta",
        ]
        assert result.external == ["https://acme-robotics.com/"]
        assert len(result) == 3

    def test_relative_hrefs_resolved_against_page(self):
        from link_harvester import harvest_links

        html = """
        <a href="portfolio/acme">Acme</a>
        <a href="../portfolio/beta">Beta</a>
        """
        result = harvest_links(html, BASE)

        assert result.internal == [
            "https://fund.com/portfolio/acme",
            "https://fund.com/portfolio/beta",
        ]

    def test_internal_capped_at_max_pages(self):
        from link_harvester import harvest_links

        html = "".join(f'<a href="/portfolio/c{i}">C{i}</a>' for i in range(10))
        result = harvest_links(html, BASE, max_pages=3)
        assert len(result.internal) == 3

    def test_external_capped_at_half(self):
        from link_harvester import harvest_links

        html = "".join(
            f'<a href="https://company{i}.com">Company Number {chr(65 + i)}</a>' for i in range(6)
        )
        result = harvest_links(html, BASE, max_pages=4)
        assert len(result.external) == 2

    def test_empty_html(self):
        from link_harvester import harvest_links

        assert len(harvest_links("", BASE)) == 0

    @pytest.mark.parametrize("text,expected", [
        ("Acme Robotics", True),
        ("Beta Labs Group Inc", True),
        ("Acme", False),
        ("About Our Firm", False),
        ("Privacy Policy", False),
        ("acme robotics", False),
        ("One Two Three Four Five", False),
    ])
    def test_company_link_text(self, text, expected):
        from link_harvester import looks_like_company_link_text

        assert looks_like_company_link_text(text) is expected


class TestExternalRecord:
    """Tests for records built from a company's own homepage."""

    def test_name_and_description(self):
        from link_harvester import external_record
        from schema import PageDoc

        page = PageDoc(
            url="https://acme-robotics.com/",
            html="<h1>Acme Robotics</h1>",
            markdown="# Acme Robotics\n\nShort line\n\n"
                     "Acme builds autonomous forklifts for regional distribution centers.\n",
        )
        record = external_record(page, "https://acme-robotics.com/", BASE)

        assert record.name == "Acme Robotics"
        assert record.website == "https://acme-robotics.com/"
        assert record.description.startswith("Acme builds autonomous forklifts")
        assert record.source_url == BASE
        assert record.portfolio_url == BASE

    def test_title_used_without_h1(self):
        from link_harvester import external_record
        from schema import PageDoc

        page = PageDoc(url="https://beta.io", title="Beta Labs | Fund", description="Lab software.")
        record = external_record(page, "https://beta.io", BASE, "Fund")

        assert record.name == "Beta Labs"
        assert record.description == "Lab software."

    def test_no_name(self):
        from link_harvester import external_record
        from schema import PageDoc

        assert external_record(PageDoc(url="https://x.io"), "https://x.io", BASE) is None
