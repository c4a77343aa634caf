from telegram import Update
from telegram.ext import ContextTypes
from ..config import Config
from ..utils.messages import Messages

class BaseHandler:
    """Base class for bot handlers"""
    def __init__(self, db):
        self.db = db
        self.messages = Messages()

    async def is_admin(self, user_id: int) -> bool:
        """Check admin access"""
        return user_id in Config.ADMIN_IDS

    async def deny_non_admin(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
        """Reply with an access error and return True when the sender is not an admin"""
        if await self.is_admin(update.effective_user.id):
            return False
        await update.message.reply_text("⛔️ You do not have access to this command.")
        return True
