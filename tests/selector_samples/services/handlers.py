"""
Sample handler types for selector tests.
"""

# Local ----------------------------------------------------------------------------------------------------------------
from fluentcore.reflection import Marker, decorate

from selector_samples.models import Entity, User


# Classes --------------------------------------------------------------------------------------------------------------

class Traced(Marker):
    pass


class Local(Marker):
    inherited = False


class UserHandler:
    @decorate(Traced, Local)
    def handle(self, user: User) -> None:
        pass

    async def handle_async(self, user: User) -> None:
        pass


@decorate(Entity)
class AuditHandler(UserHandler):
    def handle(self, user: User) -> None:
        pass
