"""Exceptions spécifiques au module Clients/Projets."""

from src.core.exceptions import ConflictException, NotFoundException

class ClientNotFoundException(NotFoundException):
    def __init__(self, client_id: int):
        super().__init__(f"Client avec ID {client_id} non trouvé.")
        self.client_id = client_id

class ProjectNotFoundException(NotFoundException):
    def __init__(self, project_id: int):
        super().__init__(f"Projet avec ID {project_id} non trouvé.")
        self.project_id = project_id

class DuplicateClientCodeException(ConflictException):
    def __init__(self, code: str):
        super().__init__(f"Un client avec le code '{code}' existe déjà.")
        self.code = code
