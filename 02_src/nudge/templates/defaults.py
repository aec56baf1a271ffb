"""Seeds the template store with the bundled Copilot tip cards."""

from pathlib import Path

from ..logging_config import get_logger
from .service import MessageTemplateService

logger = get_logger(__name__)

DEFAULTS_DIR = Path(__file__).parent / "defaults"
SYSTEM_CREATOR = "system@initialization"

# (template name, bundled file)
DEFAULT_TEMPLATES = [
    ("Copilot Chat - Tips (Beginner)", "copilot-chat-tips.json"),
    ("Copilot Chat - Tips (Advanced)", "copilot-chat-tips-advanced.json"),
    ("Microsoft 365 Copilot - Tips (Beginner)", "m365-copilot-tips.json"),
    ("Microsoft 365 Copilot - Tips (Advanced)", "m365-copilot-tips-advanced.json"),
]


class DefaultTemplateInitializer:
    """Creates the default templates, but only into an empty store."""

    def __init__(self, template_service: MessageTemplateService):
        self._templates = template_service

    async def initialize(self) -> int:
        """Returns how many templates were created. Errors are logged, not raised."""
        logger.info("Checking for default nudge templates...")
        try:
            existing = await self._templates.get_all_templates()
            if existing:
                logger.info(
                    f"Found {len(existing)} existing template(s). Skipping default template creation."
                )
                return 0

            logger.info("No templates found. Creating default nudge templates...")
            for name, filename in DEFAULT_TEMPLATES:
                payload = (DEFAULTS_DIR / filename).read_text(encoding="utf-8")
                await self._templates.create_template(name, payload, SYSTEM_CREATOR)
                logger.info(f"Created default template: {name}")
            return len(DEFAULT_TEMPLATES)
        except Exception as e:
            logger.error(
                f"Error initializing default templates, continuing without them: {e}",
                exc_info=True,
            )
            return 0
