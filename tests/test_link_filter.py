"""Tests for the link filter pipeline."""

import logging

import pytest

from linkgraph.crawler.link_filter import DENY_RULES, DENY_RULES_VERSION, DenyRule, Link, LinkFilter, in_scope
from linkgraph.crawler.parser import Anchor


BASE_URL = "https://en.wikipedia.org/wiki/Main_Page"


class TestScopeFilter:
    """Tests for stay-on-site filtering."""

    @pytest.fixture
    def link_filter(self):
        return LinkFilter(scope_root="https://en.wikipedia.org")

    def test_keeps_exactly_in_scope_pages(self, link_filter):
        anchors = [
            Anchor("Cat", "https://en.wikipedia.org/wiki/Cat"),
            Anchor("Katze", "https://de.wikipedia.org/wiki/Katze"),
            Anchor("Help", "https://en.wikipedia.org/wiki/Help:X"),
            Anchor("Mail", "mailto:a@b.com"),
        ]

        links = link_filter.filter(BASE_URL, anchors)

        assert {link.href for link in links} == {"https://en.wikipedia.org/wiki/Cat"}

    def test_subdomain_of_scope_is_kept(self):
        link_filter = LinkFilter(scope_root="https://wikipedia.org")
        links = link_filter.filter(BASE_URL, [Anchor("Cat", "https://en.wikipedia.org/wiki/Cat")])
        assert len(links) == 1

    def test_look_alike_host_passes_prefix_check(self):
        assert in_scope("https://english.wikipedia.org/", "org.wikipedia.en")

    def test_no_scope_root_keeps_other_sites(self):
        link_filter = LinkFilter()
        links = link_filter.filter(BASE_URL, [Anchor("Katze", "https://de.wikipedia.org/wiki/Katze")])
        assert [link.target_key for link in links] == ["org.wikipedia.de/wiki/Katze"]


class TestLinkPipeline:
    """Tests for the ordered filter stages."""

    @pytest.fixture
    def link_filter(self):
        return LinkFilter(scope_root="https://en.wikipedia.org")

    def test_resolves_relative_hrefs(self, link_filter):
        links = link_filter.filter(BASE_URL, [Anchor("Dog", "/wiki/Dog")])

        assert links == [Link("org.wikipedia.en/wiki/Dog", "https://en.wikipedia.org/wiki/Dog", "Dog")]

    def test_drops_empty_text_and_missing_href(self, link_filter):
        anchors = [Anchor("", "/wiki/Dog"), Anchor("   ", "/wiki/Dog"), Anchor("Dog", None), Anchor("Dog", "")]
        assert link_filter.filter(BASE_URL, anchors) == []

    def test_drops_fragment_only_and_non_http(self, link_filter):
        anchors = [
            Anchor("Top", "#top"),
            Anchor("Call", "tel:+123456"),
            Anchor("Run", "javascript:void(0)"),
            Anchor("FTP", "ftp://en.wikipedia.org/file"),
        ]
        assert link_filter.filter(BASE_URL, anchors) == []

    @pytest.mark.parametrize("href", [
        "/wiki/Template:Infobox",
        "/wiki/Special:Random",
        "/wiki/User:Someone",
        "/wiki/User_talk:Someone",
        "/wiki/File:Cat.jpg",
        "/wiki/Category:Cats",
        "/wiki/Talk:Cat",
        "/w/index.php?title=Cat&action=edit",
        "/static/logo.png",
        "/docs/paper.PDF",
    ])
    def test_drops_denied_paths(self, link_filter, href):
        assert link_filter.filter(BASE_URL, [Anchor("x", href)]) == []

    def test_keeps_duplicate_targets(self, link_filter):
        anchors = [Anchor("Cat", "/wiki/Cat"), Anchor("Cat", "/wiki/Cat")]
        links = link_filter.filter(BASE_URL, anchors)
        assert len(links) == 2
        assert links[0] == links[1]

    def test_drops_unresolvable_href(self, link_filter):
        assert link_filter.filter(BASE_URL, [Anchor("Bad", "http://[::1/")]) == []

    def test_target_key_ignores_query(self, link_filter):
        links = link_filter.filter(BASE_URL, [Anchor("Cat", "/wiki/Cat?oldid=1")])
        assert links[0].target_key == "org.wikipedia.en/wiki/Cat"
        assert links[0].href == "https://en.wikipedia.org/wiki/Cat?oldid=1"


class TestDenyRules:
    """Tests for the deny-list table."""

    def test_rule_names_are_unique(self):
        names = [rule.name for rule in DENY_RULES]
        assert len(names) == len(set(names))

    def test_denied_by_reports_rule(self):
        link_filter = LinkFilter()
        rule = link_filter.denied_by("mailto:a@b.com", "mailto:a@b.com")
        assert rule.name == "mailto"

    def test_custom_rules_replace_defaults(self):
        rules = [DenyRule("drafts", r"^/drafts/", "path", "unpublished")]
        link_filter = LinkFilter(rules=rules)
        anchors = [Anchor("Draft", "/drafts/a"), Anchor("Help", "/wiki/Help:X")]

        links = link_filter.filter(BASE_URL, anchors)

        assert [link.href for link in links] == ["https://en.wikipedia.org/wiki/Help:X"]

    def test_unknown_target_rejected(self):
        with pytest.raises(ValueError):
            DenyRule("bad", "x", "query", "no such target")

    def test_rules_version_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="linkgraph.crawler.link_filter"):
            link_filter = LinkFilter(scope_root="https://en.wikipedia.org")

        assert link_filter.rules_version == f"v{DENY_RULES_VERSION}"
        assert f"deny rules v{DENY_RULES_VERSION}" in caplog.text

    def test_custom_rules_are_labelled(self):
        link_filter = LinkFilter(rules=[DenyRule("drafts", r"^/drafts/", "path", "unpublished")])
        assert link_filter.rules_version == "custom"
