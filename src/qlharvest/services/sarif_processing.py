"""Normalization of SARIF results into analysis alerts."""

from typing import Optional

from qlharvest.domain.models import (
    AnalysisAlert,
    AnalysisMessage,
    AnalysisMessageLocation,
    AnalysisMessageToken,
    CodeFlow,
    CodeSnippet,
    FileLink,
    HighlightedRegion,
    ResultSeverity,
    ThreadFlow,
)
from qlharvest.services.sarif_utils import (
    SarifLink,
    parse_highlighted_line,
    parse_sarif_plain_text_message,
    parse_sarif_region,
)

# A line of more than 8k characters is probably generated.
CODE_SNIPPET_LARGE_LINE_SIZE_LIMIT = 8192
# If less than 1% of the snippet is highlighted, it is probably bundled code.
CODE_SNIPPET_HIGHLIGHTED_REGION_MINIMUM_RATIO = 0.01

DEFAULT_SEVERITY = ResultSeverity.WARNING

_SEVERITIES = {
    "recommendation": ResultSeverity.RECOMMENDATION,
    "warning": ResultSeverity.WARNING,
    "error": ResultSeverity.ERROR,
}


class SarifProcessingError(Exception):
    """Raised for a SARIF result that cannot be turned into alerts."""

    pass


def extract_analysis_alerts(sarif_log: dict, file_link_prefix: str) -> tuple[list[AnalysisAlert], list[str]]:
    """
    Convert every result of a SARIF log into analysis alerts.

    Malformed results are skipped; the reason for each is returned alongside
    the alerts that could be extracted.

    Args:
        sarif_log: Parsed SARIF log
        file_link_prefix: Prefix for turning file paths into links

    Returns:
        Tuple of (alerts, errors)
    """
    alerts: list[AnalysisAlert] = []
    errors: list[str] = []

    for run in sarif_log.get("runs") or []:
        for result in run.get("results") or []:
            try:
                alerts.extend(_extract_result_alerts(run, result, file_link_prefix))
            except (SarifProcessingError, KeyError, TypeError, AttributeError, ValueError) as e:
                errors.append(f"Error when processing SARIF result: {e}")

    return alerts, errors


def _extract_result_alerts(run: dict, result: dict, file_link_prefix: str) -> list[AnalysisAlert]:
    message = _get_message(result, (result.get("message") or {}).get("text"), file_link_prefix)
    rule = try_get_rule(run, result)
    severity = try_get_severity(rule) or DEFAULT_SEVERITY
    code_flows = _get_code_flows(result, file_link_prefix)
    short_description = _get_short_description(rule, message)

    locations = result.get("locations")
    if not locations:
        raise SarifProcessingError("No locations found in the SARIF result")

    alerts = []
    for location in locations:
        physical_location = location.get("physicalLocation") or {}
        file_path = _get_file_path(physical_location)
        region = physical_location.get("region")
        if region is None:
            raise SarifProcessingError("No region found in the SARIF result location")

        alerts.append(
            AnalysisAlert(
                message=message,
                short_description=short_description,
                severity=severity,
                file_link=FileLink(file_link_prefix=file_link_prefix, file_path=file_path),
                code_snippet=_get_code_snippet(physical_location.get("contextRegion"), region),
                highlighted_region=get_highlighted_region(region),
                code_flows=code_flows,
            )
        )

    return alerts


def try_get_rule(run: dict, result: dict) -> Optional[dict]:
    """
    Find the rule a result refers to.

    The rule is looked up by id in the tool driver first, then by index in
    the tool extension the result points at.
    """
    result_rule = result.get("rule") or {}
    tool = run.get("tool") or {}

    rule_id = result_rule.get("id") or result.get("ruleId")
    if rule_id:
        for rule in (tool.get("driver") or {}).get("rules") or []:
            if rule.get("id") == rule_id:
                return rule

    rule_index = result_rule.get("index")
    tool_component_index = (result_rule.get("toolComponent") or {}).get("index")
    extensions = tool.get("extensions")
    if rule_index is not None and tool_component_index is not None and extensions is not None:
        if 0 <= tool_component_index < len(extensions):
            rules = extensions[tool_component_index].get("rules")
            if rules is not None and 0 <= rule_index < len(rules):
                return rules[rule_index]

    # Couldn't find the rule
    return None


def try_get_severity(rule: Optional[dict]) -> Optional[ResultSeverity]:
    """Map a rule's ``problem.severity`` property to a severity, if recognized."""
    if not rule:
        return None

    severity = (rule.get("properties") or {}).get("problem.severity")
    if not isinstance(severity, str):
        return None

    return _SEVERITIES.get(severity.lower())


def _get_short_description(rule: Optional[dict], message: AnalysisMessage) -> str:
    text = ((rule or {}).get("shortDescription") or {}).get("text")
    if text:
        return text
    return message.text


def get_highlighted_region(region: dict) -> HighlightedRegion:
    """
    Convert a SARIF region to a highlighted region.

    The end column is shifted by one because the log and the editor count
    the end of a selection differently.
    """
    parsed = parse_sarif_region(region)
    parsed.end_column += 1
    return parsed


def _get_file_path(physical_location: dict) -> str:
    file_path = (physical_location.get("artifactLocation") or {}).get("uri")
    if not file_path:
        raise SarifProcessingError("No file path found in the SARIF result location")
    return file_path


def _get_code_snippet(context_region: Optional[dict], region: Optional[dict]) -> Optional[CodeSnippet]:
    actual_region = context_region or region
    if not actual_region:
        return None

    text = (actual_region.get("snippet") or {}).get("text") or ""
    parsed = parse_sarif_region(actual_region)

    if context_region and region and len(text) > CODE_SNIPPET_LARGE_LINE_SIZE_LIMIT:
        highlighted_region = get_highlighted_region(region)
        highlighted_count = sum(
            len(parse_highlighted_line(line, parsed.start_line + index, highlighted_region)[1])
            for index, line in enumerate(text.split("\n"))
        )
        if highlighted_count / len(text) < CODE_SNIPPET_HIGHLIGHTED_REGION_MINIMUM_RATIO:
            # Large and barely highlighted: generated or bundled code
            return None

    return CodeSnippet(start_line=parsed.start_line, end_line=parsed.end_line, text=text)


def _get_code_flows(result: dict, file_link_prefix: str) -> list[CodeFlow]:
    code_flows = []

    for code_flow in result.get("codeFlows") or []:
        thread_flows: list[ThreadFlow] = []

        for thread_flow in code_flow.get("threadFlows") or []:
            for thread_flow_location in thread_flow.get("locations") or []:
                location = thread_flow_location["location"]
                physical_location = location["physicalLocation"]
                region = physical_location.get("region")
                message_text = (location.get("message") or {}).get("text")

                thread_flows.append(
                    ThreadFlow(
                        file_link=FileLink(
                            file_link_prefix=file_link_prefix,
                            file_path=_get_file_path(physical_location),
                        ),
                        code_snippet=_get_code_snippet(physical_location.get("contextRegion"), region),
                        highlighted_region=get_highlighted_region(region) if region else None,
                        message=_get_message(result, message_text, file_link_prefix) if message_text else None,
                    )
                )

        code_flows.append(CodeFlow(thread_flows=thread_flows))

    return code_flows


def _get_message(result: dict, message_text: Optional[str], file_link_prefix: str) -> AnalysisMessage:
    if not message_text:
        raise SarifProcessingError("No message text found in the SARIF result")

    tokens: list[AnalysisMessageToken] = []
    for part in parse_sarif_plain_text_message(message_text):
        if isinstance(part, SarifLink):
            related = _find_related_location(result, part.dest)
            physical_location = related.get("physicalLocation") or {}
            region = physical_location.get("region")
            if region is None:
                raise SarifProcessingError(f"Related location {part.dest} has no region")
            tokens.append(
                AnalysisMessageToken(
                    t="location",
                    text=part.text,
                    location=AnalysisMessageLocation(
                        file_link=FileLink(
                            file_link_prefix=file_link_prefix,
                            file_path=_get_file_path(physical_location),
                        ),
                        highlighted_region=get_highlighted_region(region),
                    ),
                )
            )
        else:
            tokens.append(AnalysisMessageToken(t="text", text=part))

    return AnalysisMessage(tokens=tokens)


def _find_related_location(result: dict, location_id: int) -> dict:
    for related in result.get("relatedLocations") or []:
        if related.get("id") == location_id:
            return related
    raise SarifProcessingError(f"Related location {location_id} not found in the SARIF result")
