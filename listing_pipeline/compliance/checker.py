"""
Platform compliance checker.

Evaluates the global compliance rules each marketplace requires (barcode,
packaging registration, electronics waste registration, return address,
legal disclosure, tax id, warranty) plus per-content rules (title,
description, bullets, images), and aggregates them into a scored report.

Hard rules flip ``passed``; soft rules only produce warnings.
"""

from typing import Callable, Iterable, Optional

from listing_pipeline.compliance.ean import validate_ean
from listing_pipeline.models.schemas import (
    ComplianceCheckResult,
    ComplianceReport,
    ComplianceRuleKey,
    ComplianceRuleResult,
    ContentComplianceResult,
    ContentRuleResult,
    Platform,
    PlatformComplianceReport,
    ProductComplianceAttributes,
    ProductData,
    RuleSeverity,
    RuleStatus,
)
from listing_pipeline.platforms.requirements import (
    WEEE_CATEGORIES,
    ComplianceRuleDefinition,
    get_rule,
    lookup,
)
from listing_pipeline.utils.logger import get_logger

logger = get_logger(__name__)

# Approximate number of checks per platform used for scoring
CHECK_WEIGHT = 5

RuleHandler = Callable[[ComplianceRuleDefinition, ProductComplianceAttributes], ComplianceRuleResult]


def compute_compliance_score(platform_count: int, total_issues: int) -> float:
    """
    Aggregate compliance score as a percentage.

    ``total_checks`` is ``platform_count * CHECK_WEIGHT`` rather than the
    number of rules actually evaluated.

    Example:
        >>> compute_compliance_score(2, 2)
        80.0
    """
    total_checks = platform_count * CHECK_WEIGHT
    if total_checks == 0:
        return 100.0
    return round((total_checks - total_issues) / total_checks * 100, 1)


def is_weee_category(category: Optional[str]) -> bool:
    """Case-insensitive substring match against the WEEE category list."""
    if not category:
        return False
    lowered = category.lower()
    return any(keyword.lower() in lowered for keyword in WEEE_CATEGORIES)


def listing_title(brand: str, title: str, model_number: str) -> str:
    return f"{brand} {title} | {model_number}"


class ComplianceChecker:
    """
    Evaluates platform compliance rules for a product.

    Example:
        >>> checker = ComplianceChecker()
        >>> result = checker.check("galaxus", ProductComplianceAttributes(ean="4006381333931"))
        >>> result.passed
        True
    """

    def __init__(self):
        self._handlers: dict[ComplianceRuleKey, RuleHandler] = {
            ComplianceRuleKey.EAN_GTIN: self._check_ean,
            ComplianceRuleKey.LUCID: self._check_lucid,
            ComplianceRuleKey.WEEE: self._check_weee,
            ComplianceRuleKey.GERMAN_RETURN_ADDRESS: self._check_return_address,
            ComplianceRuleKey.IMPRESSUM: self._check_impressum,
            ComplianceRuleKey.RFC_TAX_ID: self._check_rfc_tax_id,
            ComplianceRuleKey.WARRANTY_INFO: self._check_warranty,
        }
        missing = [key.value for key in ComplianceRuleKey if key not in self._handlers]
        if missing:
            raise RuntimeError(f"No compliance handler for: {', '.join(missing)}")

    # =========================================================================
    # Global Rules
    # =========================================================================

    def check(
        self,
        platform: Platform | str,
        attributes: ProductComplianceAttributes,
    ) -> ComplianceCheckResult:
        """Evaluate every global rule the platform requires."""
        requirements = lookup(platform)
        results = []
        for key in requirements.global_compliance:
            rule_key = ComplianceRuleKey(key)
            results.append(self._handlers[rule_key](get_rule(rule_key), attributes))

        passed = not any(r.is_hard_failure for r in results)
        return ComplianceCheckResult(platform=requirements.platform, passed=passed, requirements=results)

    @staticmethod
    def _result(
        rule: ComplianceRuleDefinition,
        status: RuleStatus,
        message: str,
        required: Optional[bool] = None,
    ) -> ComplianceRuleResult:
        return ComplianceRuleResult(
            rule=rule.key,
            name=rule.name,
            required=rule.required if required is None else required,
            severity=rule.severity,
            status=status,
            message=message,
        )

    def _binary(
        self,
        rule: ComplianceRuleDefinition,
        ok: bool,
        pass_message: str,
        fail_message: str,
    ) -> ComplianceRuleResult:
        if ok:
            return self._result(rule, RuleStatus.PASS, pass_message)
        missing_status = RuleStatus.FAIL if rule.severity == RuleSeverity.HARD else RuleStatus.WARNING
        return self._result(rule, missing_status, fail_message)

    def _check_ean(self, rule, attributes):
        validation = validate_ean(attributes.ean)
        return self._binary(
            rule,
            validation.valid,
            f"EAN/GTIN {attributes.ean} validated successfully",
            validation.error or "",
        )

    def _check_lucid(self, rule, attributes):
        return self._binary(
            rule,
            bool(attributes.lucid_number),
            f"LUCID number registered: {attributes.lucid_number}",
            "LUCID Packaging Register number required for German marketplace",
        )

    def _check_weee(self, rule, attributes):
        if not is_weee_category(attributes.product_category):
            return self._result(
                rule,
                RuleStatus.NOT_APPLICABLE,
                "Product category does not require WEEE registration",
                required=False,
            )
        return self._binary(
            rule,
            bool(attributes.weee_number),
            f"WEEE registration: {attributes.weee_number}",
            "WEEE registration required for electronics in Germany",
        )

    def _check_return_address(self, rule, attributes):
        return self._binary(
            rule,
            attributes.has_german_return_address,
            "German return address configured",
            "German return address recommended for most platforms",
        )

    def _check_impressum(self, rule, attributes):
        return self._binary(
            rule,
            attributes.has_impressum,
            "Impressum (legal business info) configured",
            "Impressum required by German law for online sellers",
        )

    def _check_rfc_tax_id(self, rule, attributes):
        return self._binary(
            rule,
            bool(attributes.rfc_tax_id),
            f"RFC tax ID registered: {attributes.rfc_tax_id}",
            "RFC (Tax ID) required for Mexico sellers",
        )

    def _check_warranty(self, rule, attributes):
        return self._binary(
            rule,
            attributes.has_warranty_info,
            "Warranty information provided",
            "Warranty information should be provided for this marketplace",
        )

    # =========================================================================
    # Content Rules
    # =========================================================================

    def check_content(
        self,
        platform: Platform | str,
        product_title: str,
        model_number: str,
        brand: str = "LG",
        description: Optional[str] = None,
        feature_count: int = 0,
        image_count: Optional[int] = None,
    ) -> ContentComplianceResult:
        """
        Evaluate title, description, bullet and image rules for one platform.

        Title and description overruns are hard issues; too few bullets or
        images only warn. The description is only checked when supplied.
        """
        req = lookup(platform)
        rules: list[ContentRuleResult] = []

        title = listing_title(brand, product_title, model_number)
        title_ok = len(title) <= req.title_max_length
        rules.append(ContentRuleResult(
            rule="title_length",
            status=RuleStatus.PASS if title_ok else RuleStatus.FAIL,
            severity=RuleSeverity.HARD,
            message=(
                f"Title length OK ({len(title)}/{req.title_max_length})"
                if title_ok
                else f"Title exceeds max length ({len(title)}/{req.title_max_length})"
            ),
            current=len(title),
            maximum=req.title_max_length,
        ))

        if description:
            desc_ok = len(description) <= req.description_max_length
            rules.append(ContentRuleResult(
                rule="description_length",
                status=RuleStatus.PASS if desc_ok else RuleStatus.FAIL,
                severity=RuleSeverity.HARD,
                message=(
                    f"Description length OK ({len(description)}/{req.description_max_length})"
                    if desc_ok
                    else f"Description exceeds max length ({len(description)}/{req.description_max_length})"
                ),
                current=len(description),
                maximum=req.description_max_length,
            ))
        else:
            rules.append(ContentRuleResult(
                rule="description_length",
                status=RuleStatus.PASS,
                severity=RuleSeverity.HARD,
                message="No description supplied",
                maximum=req.description_max_length,
            ))

        bullet_min = req.bullet_points_min or 0
        bullets_ok = feature_count >= bullet_min
        rules.append(ContentRuleResult(
            rule="bullet_points",
            status=RuleStatus.PASS if bullets_ok else RuleStatus.WARNING,
            severity=RuleSeverity.SOFT,
            message=(
                f"{feature_count} feature(s) available for bullet points"
                if bullets_ok
                else f"Only {feature_count} feature(s) available, {bullet_min} bullet points expected"
            ),
            current=feature_count,
            minimum=req.bullet_points_min,
            maximum=req.bullet_points_max,
        ))

        images = req.image_requirements
        if not image_count:
            image_status = RuleStatus.PASS
            image_message = "No images supplied to check"
        elif image_count < images.min_quantity:
            image_status = RuleStatus.WARNING
            image_message = f"Only {image_count} image(s), at least {images.min_quantity} required"
        else:
            image_status = RuleStatus.PASS
            image_message = f"{image_count} image(s) meet quantity requirement"
        rules.append(ContentRuleResult(
            rule="image_requirements",
            status=image_status,
            severity=RuleSeverity.SOFT,
            message=image_message,
            current=image_count,
            minimum=images.min_quantity,
            maximum=images.max_quantity,
        ))

        passed = not any(r.status == RuleStatus.FAIL for r in rules)
        return ContentComplianceResult(platform=req.platform, passed=passed, rules=rules)

    # =========================================================================
    # Aggregation
    # =========================================================================

    def check_platforms(
        self,
        platforms: Iterable[Platform | str],
        attributes: ProductComplianceAttributes,
        product: Optional[ProductData] = None,
    ) -> ComplianceReport:
        """
        Run global and content checks for every platform and aggregate.

        Content rules are only evaluated when product data is given.
        """
        platforms = list(dict.fromkeys(Platform(p).value for p in platforms))
        platform_checks: dict[str, PlatformComplianceReport] = {}
        total_issues = 0
        total_warnings = 0

        for platform in platforms:
            global_result = self.check(platform, attributes)
            issues: list[str] = []
            warnings: list[str] = []

            for rule in global_result.requirements:
                if rule.status == RuleStatus.FAIL:
                    issues.append(rule.message)
                elif rule.status == RuleStatus.WARNING:
                    warnings.append(rule.message)

            content_rules: list[ContentRuleResult] = []
            if product is not None:
                content = self.check_content(
                    platform,
                    product_title=product.title,
                    model_number=product.model_number,
                    brand=product.brand,
                    description=product.description or None,
                    feature_count=len(product.features),
                    image_count=len(product.images),
                )
                content_rules = content.rules
                issues.extend(r.message for r in content.issues)
                warnings.extend(r.message for r in content.warnings)

            total_issues += len(issues)
            total_warnings += len(warnings)
            platform_checks[platform] = PlatformComplianceReport(
                platform=platform,
                passed=global_result.passed and not issues,
                issues=issues,
                warnings=warnings,
                global_compliance=global_result.requirements,
                content_compliance=content_rules,
            )

        report_warnings: list[str] = []
        if total_warnings > 0:
            report_warnings.append(f"{total_warnings} compliance warning(s) detected")
        for platform in platforms:
            advisory = lookup(platform).compliance_advisory
            if advisory:
                report_warnings.append(advisory)

        report = ComplianceReport(
            platforms_checked=len(platforms),
            total_checks=len(platforms) * CHECK_WEIGHT,
            total_issues=total_issues,
            total_warnings=total_warnings,
            compliance_score=compute_compliance_score(len(platforms), total_issues),
            platform_checks=platform_checks,
            warnings=report_warnings,
            status_summary=self.status_summary(attributes),
        )

        logger.debug(
            "Compliance evaluated",
            platforms=platforms,
            total_issues=total_issues,
            total_warnings=total_warnings,
            score=report.compliance_score,
        )
        return report

    @staticmethod
    def status_summary(attributes: ProductComplianceAttributes) -> dict[str, str]:
        """Registration state of the product, independent of platform."""
        if attributes.weee_number:
            weee = "registered"
        elif is_weee_category(attributes.product_category):
            weee = "missing"
        else:
            weee = "not_required"
        return {
            "lucid": "registered" if attributes.lucid_number else "missing",
            "weee": weee,
            "ean": "valid" if validate_ean(attributes.ean).valid else "invalid",
            "impressum": "configured" if attributes.has_impressum else "missing",
            "german_return_address": "configured" if attributes.has_german_return_address else "missing",
        }
