from __future__ import annotations


def model_command_reply(router, user_id: str, text: str | None) -> str:
    """`/suplo-model` shows the caller's backend; `/suplo-model <name>` switches it."""
    choice = (text or "").strip()
    if not choice:
        return f"You are using *{router.resolve(user_id)}*. Valid options are: {router.valid_options()}"
    return router.set_preference(user_id, choice).message


def setup(app, services) -> None:
    @app.command("/suplo-model")
    async def model_command(ack, body, respond):
        await ack()
        reply = model_command_reply(services.provider_router, body.get("user_id", ""), body.get("text"))
        await respond(text=reply, response_type="ephemeral")
