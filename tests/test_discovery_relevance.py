from pipescout.core.discovery.relevance import (
    SCORE_DOMAIN,
    SCORE_KEYWORD_AND_TEXT,
    SCORE_REJECT,
    domain_matches,
    is_relevant,
    score_anchor,
    significant_tokens,
)


def test_significant_tokens_drop_short_words():
    assert significant_tokens("Eli Lilly and Co") == ["eli", "lilly", "and"]
    assert significant_tokens("AB") == []


def test_domain_match_scores_highest():
    url = "https://www.pfizer.com/science/drug-product-pipeline"
    assert score_anchor(url, "Our pipeline", "Pfizer") == SCORE_DOMAIN


def test_domain_label_inside_entity_token():
    assert domain_matches("https://www.gilead.com/science", ["gileadsciences"])


def test_keyword_plus_text_mention_scores_one():
    url = "https://news.example.org/pipeline-review"
    assert score_anchor(url, "Pfizer pipeline update", "Pfizer") == SCORE_KEYWORD_AND_TEXT


def test_keyword_without_mention_is_rejected():
    url = "https://news.example.org/pipeline-review"
    assert score_anchor(url, "Industry pipeline review", "Pfizer") == SCORE_REJECT


def test_unrelated_anchor_is_rejected():
    assert not is_relevant("https://news.example.org/article", "Pfizer earnings", "Pfizer")


def test_entity_without_significant_tokens_rejects_everything():
    assert not is_relevant("https://www.ab.com/pipeline", "AB pipeline", "AB")
