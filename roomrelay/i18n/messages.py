MESSAGES = {
    "en": {
        "error": {
            "malformed": "Invalid message format",
            "unknown_type": "unknown type",
            "invalid_field": "missing or invalid field: {field}",
            "not_joined": "join a room first",
            "already_joined": "already joined a room",
            "wrong_room": "not a member of this room",
            "sender_mismatch": "senderId does not match this connection",
            "duplicate_client": "clientId already present in room",
            "frame_too_large": "frame too large",
            "too_many_errors": "too many protocol errors",
            "join_timeout": "join timeout",
            "idle_timeout": "idle timeout",
            "queue_overflow": "outbound queue overflow",
            "write_failed": "write failed",
            "disconnected": "connection lost",
            "shutdown": "server shutting down",
            "internal": "internal error"
        }
    },
    "ru": {
        "error": {
            "malformed": "Неверный формат сообщения",
            "unknown_type": "неизвестный тип",
            "invalid_field": "отсутствует или неверно поле: {field}",
            "not_joined": "сначала войдите в комнату",
            "already_joined": "вы уже в комнате",
            "wrong_room": "вы не участник этой комнаты",
            "sender_mismatch": "senderId не совпадает с этим соединением",
            "duplicate_client": "clientId уже есть в комнате",
            "frame_too_large": "слишком большой кадр",
            "too_many_errors": "слишком много ошибок протокола",
            "join_timeout": "истекло время ожидания входа",
            "idle_timeout": "истекло время простоя",
            "queue_overflow": "переполнена очередь отправки",
            "write_failed": "ошибка записи",
            "disconnected": "соединение потеряно",
            "shutdown": "сервер останавливается",
            "internal": "внутренняя ошибка"
        }
    }
}


def tr(key, lang="en", **params):
    ## key is string like "error.unknown_type"
    d = MESSAGES.get(lang, MESSAGES["en"])
    for part in key.split("."):
        d = d.get(part, {})
    if not isinstance(d, str):
        return "???"
    return d.format(**params) if params else d
