import base64
from typing import Dict


class AuthProvider:
    def add_headers(self, request_headers: Dict[str, str]):
        pass


# Private API: this is an evolving interface and it will change in the future.
# Please must not depend on it in your applications.
class BasicAuthProvider(AuthProvider):
    def __init__(self, user: str, password: str):
        self.__authorization_header_value = "Basic {}".format(
            self.encode_credentials(user, password)
        )

    @staticmethod
    def encode_credentials(user: str, password: str) -> str:
        return base64.b64encode("{}:{}".format(user, password).encode("utf-8")).decode(
            "ascii"
        )

    def add_headers(self, request_headers: Dict[str, str]):
        request_headers["Authorization"] = self.__authorization_header_value

    def __repr__(self):
        return "BasicAuthProvider(Authorization=Basic ***)"
