# storefront/utils/sequencing.py


class RequestSequencer:
    """
    Licznik generacji dla zasady "ostatnie zadanie wygrywa".
    Kazde wyslane zadanie dostaje kolejny numer generacji,
    odpowiedz jest stosowana tylko gdy jej generacja jest nadal najnowsza.
    """

    def __init__(self):
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, generation: int) -> bool:
        return generation == self._latest

    def invalidate(self) -> None:
        #kazda odpowiedz w locie staje sie nieaktualna
        self._latest += 1
