# messages.py
"""Caller-facing relay messages in the CRM's supported locales."""

from typing import Optional

SUPPORTED_LOCALES = ("ar", "en")

MESSAGES = {
    "ar": {
        "saved": "تم حفظ {count} نتيجة بنجاح في قائمة العملاء",
        "input_error": "خطأ في البيانات المرسلة. يرجى المحاولة مرة أخرى.",
        "temporary_error": "واجهنا مشكلة مؤقتة في الإرسال. سنحاول مرة أخرى.",
        "unexpected_error": "حدث خطأ غير متوقع. يرجى المحاولة لاحقاً.",
    },
    "en": {
        "saved": "{count} results saved to your leads list",
        "input_error": "The search data was rejected. Please check it and try again.",
        "temporary_error": "We hit a temporary delivery problem. Please try again later.",
        "unexpected_error": "An unexpected error occurred. Please try again later.",
    },
}


def resolve_locale(locale: Optional[str], default: str = "ar") -> str:
    """Reduce a locale tag such as "en-US" to a supported language."""
    if locale:
        language = locale.replace("_", "-").split("-", 1)[0].lower()
        if language in SUPPORTED_LOCALES:
            return language
    return default if default in SUPPORTED_LOCALES else SUPPORTED_LOCALES[0]


def get_message(key: str, locale: Optional[str] = None, **kwargs) -> str:
    """Return a formatted message for the locale, falling back to Arabic."""
    catalog = MESSAGES.get(resolve_locale(locale), MESSAGES["ar"])
    return catalog[key].format(**kwargs)
