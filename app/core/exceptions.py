class GameException(Exception):
    """Base exception for game-related errors."""
    pass


class GameNotFound(GameException):
    """Raised when a game session is not found."""
    pass


class PlayerNotFound(GameException):
    """Raised when a player is not found."""
    pass


class NotAPlayer(GameException):
    """Raised when someone who is not seated in a game tries to act on it."""
    pass


class NotYourTurn(GameException):
    """Raised when a player tries to move out of turn."""
    pass


class InvalidMove(GameException):
    """Raised when a move fails the rules of chess."""
    pass


class StalePosition(InvalidMove):
    """Raised when a move was computed against an outdated position."""
    pass


class InvalidTransition(GameException):
    """Raised when a control action is not allowed in the current state."""
    pass


class GameEnded(InvalidTransition):
    """Raised when trying to act on a game that has already ended."""
    pass


class TicketNotFound(GameException):
    """Raised when a matchmaking ticket is not found."""
    pass


class TournamentNotFound(GameException):
    """Raised when a tournament is not found."""
    pass


class InsufficientParticipants(GameException):
    """Raised when starting a tournament with fewer than two players."""
    pass


class PersistenceError(GameException):
    """Raised when a computed transition could not be committed."""
    pass
