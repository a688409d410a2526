from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: Union[int, str]
    type: Optional[str] = None  # private, group, supergroup, channel
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TelegramMessage(BaseModel):
    message_id: Optional[int] = None
    date: Optional[int] = None
    chat: TelegramChat
    # "from" is reserved in Python
    from_user: Optional[TelegramUser] = Field(default=None, validation_alias=AliasChoices("from", "from_user"))
    text: Optional[str] = None
    caption: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def sender_name(self) -> Optional[str]:
        source = self.from_user or self.chat
        parts = [part for part in (source.first_name, source.last_name) if part]
        if parts:
            return " ".join(parts)
        return source.username


class TelegramUpdate(BaseModel):
    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None
    edited_message: Optional[TelegramMessage] = None
    channel_post: Optional[TelegramMessage] = None
