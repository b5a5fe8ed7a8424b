import logging
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from biaswatch.errors import ConfigError, ExtractionError, UpstreamError, ValidationError
from biaswatch.models.article import (
    AnalysisRequest,
    AnalysisResult,
    BiasedPhrase,
    CamelModel,
    ComparisonResult,
    MultidimensionalAnalysis,
    Topics,
)
from biaswatch.services.completion import parse_json_payload
from biaswatch.utils.bias_scale import NEUTRAL_SCORE, clamp_score
from biaswatch.utils.extractor import UNTITLED, extract

logger = logging.getLogger(__name__)

STANDARD_SOURCES = [
    "New York Times",
    "Wall Street Journal",
    "Fox News",
    "CNN",
    "BBC",
    "Washington Post",
    "NPR",
]

# A comparison is only meaningful when this many outlets cover one story.
MIN_SHARED_OUTLETS = 3
EXCERPT_CHARS = 500
ILLUSTRATIVE_PREFIX = "[Illustrative] "

ANALYSIS_MAX_TOKENS = 4000
COMPARISON_MAX_TOKENS = 3000


# Pydantic model for the structured JSON the completion service returns
class BiasAnalysisResponse(CamelModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    bias_score: int = NEUTRAL_SCORE
    political_leaning: str = "Centrist"
    emotional_language: str = "Moderate"
    factual_reporting: str = "Moderate"
    bias_analysis: str = ""
    neutral_text: str = ""
    biased_phrases: List[BiasedPhrase] = Field(default_factory=list)
    topics: Topics = Field(default_factory=Topics)
    multidimensional_analysis: MultidimensionalAnalysis = Field(default_factory=MultidimensionalAnalysis)

    @field_validator("*", mode="before")
    @classmethod
    def _null_means_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

    @field_validator("bias_score", mode="before")
    @classmethod
    def _clamp_score(cls, value):
        return clamp_score(value)

    @field_validator("biased_phrases", mode="before")
    @classmethod
    def _phrases(cls, value):
        if not isinstance(value, list):
            return value
        phrases = []
        for item in value:
            if isinstance(item, str):
                item = {"text": item}
            # Entries without phrase text carry nothing worth keeping.
            if not isinstance(item, dict) or not isinstance(item.get("text"), str) or not item["text"].strip():
                logger.warning(f"Dropping biased phrase without text: {item!r}")
                continue
            phrases.append(item)
        return phrases

    @field_validator("topics", mode="before")
    @classmethod
    def _topic_string(cls, value):
        if isinstance(value, str):
            return {"main": value}
        return value


def title_from_text(text: str) -> str:
    """Use the first line as the title when it looks like a headline."""
    first_line = text.split('\n')[0].strip()
    if 10 < len(first_line) < 200:
        return first_line
    return UNTITLED


def normalize_content(content: str) -> str:
    lines = [line.strip() for line in content.split('\n')]
    return '\n\n'.join(line for line in lines if line)


def build_analysis_prompt(content: str) -> str:
    return f"""
    Analyze the following news article for political bias and provide a comprehensive evaluation. The article is delimited by triple backticks.

    ```
    {content}
    ```

    Provide your analysis in JSON format with the following fields:
    - title: The title of the article (if not obvious, make a reasonable guess)
    - biasScore: A number from 0 to 100 placing the article on the political spectrum: 0 is strongly conservative, 50 is neutral, 100 is strongly liberal
    - politicalLeaning: One of "Conservative", "Liberal", or "Centrist"
    - emotionalLanguage: One of "Low", "Moderate", or "High"
    - factualReporting: One of "Low", "Moderate", or "High"
    - biasAnalysis: A 2-3 paragraph explanation of the bias you detected and why
    - neutralText: A complete rewrite of the ENTIRE article in neutral, objective language. Keep all factual information but remove bias, loaded language and partisan framing.
    - biasedPhrases: An array of objects with "text" (the biased phrase) and "explanation" (why it is biased)
    - topics: An object with "main" (the primary topic) and "related" (an array of related topics such as "Politics", "Economy", "Crime")
    - multidimensionalAnalysis: An object with numeric scores from 0-100 for these dimensions:
        * bias: Overall bias level (0=unbiased, 100=extremely biased)
        * emotional: Use of emotional language (0=purely factual, 100=highly emotional)
        * factual: Factual accuracy (0=opinion-based, 100=strictly factual)
        * political: Political slant (0=no political angle, 100=heavily political)
        * neutralLanguage: Use of neutral language (0=heavily loaded language, 100=completely neutral)

    Focus on loaded language, emotional appeals, opinion presented as fact, selective facts, framing and labeling. Look at the overall tone and presentation, not just individual words.

    The neutralText field must contain a COMPLETE rewrite of the entire article, not just a portion of it.
    """


def _excerpt(article: dict) -> str:
    description = article.get("description") or ""
    content = article.get("content") or ""
    return (description + " " + content).strip()[:EXCERPT_CHARS]


def build_comparison_prompt(topic: str, source_articles: dict) -> str:
    sections = []
    for source, articles in source_articles.items():
        if not articles:
            sections.append(f"{source}: No articles found")
            continue
        article = articles[0]
        sections.append(
            f"{source}:\n"
            f"Headline: {article.get('title') or 'Untitled'}\n"
            f"Published: {article.get('publishedAt') or 'Unknown date'}\n"
            f"Content: {_excerpt(article)}..."
        )
    listing = "\n\n".join(sections)

    return f"""
    Find articles about the EXACT SAME news event or story across different sources, and compare only their bias.

    Below are headlines and excerpts from several news sources on the topic "{topic}". Your task is to:

    1. Identify which sources are covering the EXACT SAME specific news event or story
    2. For those sources, give a bias score from 0 to 100 where 0 is strongly conservative, 50 is neutral and 100 is strongly liberal
    3. Give a one-sentence explanation of their political leaning and how it influenced their coverage

    Here are the articles from each source:

    {listing}

    Respond with a JSON object with a "results" array. Include one object per source covering that same story, with:
    - source: string (news source name, exactly as given above)
    - headline: string (the actual headline)
    - biasScore: number (0-100)
    - politicalLeaning: string (one of "Conservative", "Liberal", "Moderate Conservative", "Moderate Liberal", or "Centrist")
    - explanation: string (one sentence explaining the bias)
    - keyNarrative: string (the framing the source gives the story)
    - contentAnalysis: array of short strings (notable framing or word choices)

    Only include sources covering the EXACT SAME news event. Leave out sources that cover a different story or have no articles.
    """


def build_illustrative_prompt(topic: str, sources: List[str]) -> str:
    outlets = ", ".join(sources)
    return f"""
    Real coverage could not be matched across outlets for the topic "{topic}".
    Produce an ILLUSTRATIVE comparison of how each of these outlets would plausibly cover a typical story on this topic, based on their known editorial tendencies: {outlets}.

    Respond with a JSON object with a "results" array containing one object per outlet with:
    - source: string (the outlet name, exactly as given)
    - headline: string (a plausible headline in the outlet's style)
    - biasScore: number (0-100 where 0 is strongly conservative, 50 is neutral and 100 is strongly liberal)
    - politicalLeaning: string (one of "Conservative", "Liberal", "Moderate Conservative", "Moderate Liberal", or "Centrist")
    - explanation: string (one sentence explaining the expected bias)
    - keyNarrative: string (the framing the outlet would likely use)
    - contentAnalysis: array of short strings (likely framing or word choices)
    """


def _outlet_key(name: str) -> str:
    key = (name or "").strip().lower()
    if key.startswith("the "):
        key = key[4:]
    return key


def parse_comparison_results(payload) -> List[ComparisonResult]:
    """Accept either a bare list or an object with a "results" list."""
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict) and isinstance(payload.get("results"), list):
        items = payload["results"]
    else:
        raise UpstreamError("Unexpected response format from analysis")

    results = []
    for item in items:
        try:
            results.append(ComparisonResult.model_validate(item))
        except SchemaValidationError as e:
            logger.warning(f"Skipping malformed comparison entry: {e}")
    return results


def first_per_outlet(results) -> List[ComparisonResult]:
    """Keep the first entry for each outlet, in answer order."""
    seen = set()
    unique = []
    for result in results:
        key = _outlet_key(result.source)
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


class BiasAnalyzer:
    def __init__(self, completion, news_search=None, extractor=extract, fetch_timeout=20.0):
        self.completion = completion
        self.news_search = news_search
        self.extractor = extractor
        self.fetch_timeout = fetch_timeout

    def _resolve_article(self, request: AnalysisRequest):
        url = (request.url or "").strip()
        if url:
            logger.info(f"Extracting article text from URL: {url}")
            try:
                extracted = self.extractor(url, timeout=self.fetch_timeout)
            except ExtractionError:
                raise
            except Exception as e:
                logger.error(f"Unexpected error extracting {url}: {e}", exc_info=True)
                raise ExtractionError(f"Failed to extract text from URL: {e}") from e
            return extracted.content, extracted.title, extracted.source, url

        text = request.text or ""
        if text.strip():
            return text, title_from_text(text), None, None

        raise ValidationError("Either URL or text must be provided")

    def analyze(self, request) -> AnalysisResult:
        """Score one article given as {"url": ...} or {"text": ...}."""
        if not isinstance(request, AnalysisRequest):
            try:
                request = AnalysisRequest.model_validate(request or {})
            except SchemaValidationError as e:
                raise ValidationError(f"Invalid analysis request: {e}") from e

        content, title, source, url = self._resolve_article(request)

        raw = self.completion.complete_json(build_analysis_prompt(content), max_output_tokens=ANALYSIS_MAX_TOKENS)
        payload = parse_json_payload(raw)
        if not isinstance(payload, dict):
            raise UpstreamError("Unexpected response format from analysis")
        try:
            analysis = BiasAnalysisResponse.model_validate(payload)
        except SchemaValidationError as e:
            logger.error(f"Failed to validate analysis response: {e}")
            raise UpstreamError(f"Invalid analysis format: {e}") from e

        logger.info(f"Analyzed '{title[:50]}': bias score {analysis.bias_score}")
        return AnalysisResult(
            title=analysis.title or title,
            source=source,
            url=url,
            content=normalize_content(content),
            bias_score=analysis.bias_score,
            bias_analysis=analysis.bias_analysis,
            neutral_text=analysis.neutral_text,
            biased_phrases=analysis.biased_phrases,
            political_leaning=analysis.political_leaning,
            emotional_language=analysis.emotional_language,
            factual_reporting=analysis.factual_reporting,
            topics=analysis.topics,
            multidimensional_analysis=analysis.multidimensional_analysis,
        )

    def _fetch_source_articles(self, topic, outlets):
        if self.news_search is None:
            logger.warning("No news search client configured; skipping real coverage lookup")
            return {outlet: [] for outlet in outlets}
        try:
            return self.news_search.fetch_articles_from_sources(topic, outlets)
        except ConfigError as e:
            logger.warning(f"News search unavailable: {e}")
            return {outlet: [] for outlet in outlets}

    def _compare_real_coverage(self, topic, source_articles) -> List[ComparisonResult]:
        prompt = build_comparison_prompt(topic, source_articles)
        raw = self.completion.complete_json(prompt, max_output_tokens=COMPARISON_MAX_TOKENS)
        try:
            results = parse_comparison_results(parse_json_payload(raw))
        except UpstreamError as e:
            logger.warning(f"Could not read real coverage comparison for '{topic}': {e}")
            return []
        covered = {_outlet_key(source) for source, articles in source_articles.items() if articles}
        return first_per_outlet(result for result in results if _outlet_key(result.source) in covered)

    def _compare_illustrative(self, topic, outlets) -> List[ComparisonResult]:
        prompt = build_illustrative_prompt(topic, outlets)
        payload = parse_json_payload(self.completion.complete_json(prompt, max_output_tokens=COMPARISON_MAX_TOKENS))
        results = first_per_outlet(parse_comparison_results(payload))
        if not results:
            raise UpstreamError(f"Could not build a comparison for topic \"{topic}\"")
        return [
            result.model_copy(update={
                "illustrative": True,
                "explanation": ILLUSTRATIVE_PREFIX + result.explanation,
            })
            for result in results
        ]

    def compare_sources(self, topic, sources=None) -> List[ComparisonResult]:
        """
        Compare how outlets cover one story about topic. Falls back to an
        illustrative comparison when real coverage cannot be matched.
        """
        topic = (topic or "").strip()
        if not topic:
            raise ValidationError("Topic must be provided")
        outlets = list(sources) if sources else list(STANDARD_SOURCES)

        source_articles = self._fetch_source_articles(topic, outlets)
        total_articles = sum(len(articles) for articles in source_articles.values())

        if total_articles:
            results = self._compare_real_coverage(topic, source_articles)
            if len(results) >= MIN_SHARED_OUTLETS:
                logger.info(f"Compared {len(results)} outlets covering the same story on '{topic}'")
                return results
            logger.info(f"Only {len(results)} outlets share a story on '{topic}'; using illustrative comparison")
        else:
            logger.info(f"No articles found for '{topic}'; using illustrative comparison")

        return self._compare_illustrative(topic, outlets)
