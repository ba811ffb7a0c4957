"""This module contains the class SecurityShell which serves security queries from a text command stream"""

import uuid
from typing import Callable, Dict, Optional, TextIO

from iss_security.errors import IssError
from iss_security.helpers import format_trading_day, get_configured_logger
from iss_security.provider import Provider
from iss_security.security import Security


class SecurityShell:
    """
    A command loop that:
        - Reads one command per line from input stream
        - Answers it from Security instances created on demand and kept for the lifetime of the shell

    SecurityShell state consists of:
        :in_stream: TextIO: text stream to read input commands from
        :out_stream: TextIO: text stream to write resulting output to
        :provider: Provider: source of remote data shared by all securities
        :_securities: Dict[str, Security]: a mapping from upper case code to its Security, so caches are reused
        :_processors: Dict[str, Callable[..., None]]: a mapping from command word to its respective processor method
    """

    def __init__(self, provider: Provider, in_stream: TextIO, out_stream: TextIO):
        self.logger = get_configured_logger(self.__class__.__name__)
        self.provider = provider
        self.in_stream = in_stream
        self.out_stream = out_stream
        self._securities: Dict[str, Security] = {}
        self._processors: Dict[str, Callable[..., None]] = {
            "get": self.on_get,
            "history": self.on_history,
            "refresh": self.on_refresh,
            "boards": self.on_boards,
            "indices": self.on_indices,
            "dates": self.on_dates,
            "find": self.on_find,
        }

    def run(self) -> None:
        """
        Keep listening to input commands and process them in order until `quit` command or end of stream.
        For each command, set a new UUID as correlation id into the log-context

        """
        while True:
            self.logger.extra = dict(correlation_id=str(uuid.uuid4()))
            line = self.in_stream.readline()
            command = line.strip()
            if command == "quit" or line == "":
                self.logger.info("CHECKPOINT: Exit", command=command)
                break
            self.process_one(command)

    def process_one(self, command: str) -> None:
        """
        Process a single command with error handling

        :param command: str: command to process

        """
        try:
            self.logger.info("CHECKPOINT: start processing command", command=command)
            parts = command.split()
            if not parts:
                self.logger.warning("blank command", valid=list(self._processors.keys()), command=command)
                return
            cmd, args = parts[0], parts[1:]
            processor = self._processors.get(cmd)
            if processor is None:
                self.logger.error("unknown command", valid=list(self._processors.keys()), command=command)
                self.publish(f"error: unknown command {cmd}")
                return
            processor(*args)
        except TypeError:
            self.logger.error("invalid args", command=command)
            self.publish("error: invalid arguments")
        except IssError as e:
            self.logger.error("command failed", command=command)
            self.publish(f"error: {e}")
        except (KeyError, ValueError):
            self.logger.error("command failed on unexpected data", command=command)
            self.publish("error: command failed")
        finally:
            self.logger.info("CHECKPOINT: end processing command", command=command)

    def security(self, code: str) -> Security:
        """
        Return the Security for given code, creating it on first use

        :param code: str: exchange security code

        """
        key = code.upper()
        if key not in self._securities:
            self._securities[key] = Security(key, self.provider, self.logger)
            self.logger.debug("security created", secid=key)
        return self._securities[key]

    def on_get(self, code: str, *name: str) -> None:
        """
        Process `get` command: publish `<SECID> <attribute> <value>`

        :param code: str: security code
        :param name: str: attribute name, may span several words e.g. `daily high`

        """
        attribute = " ".join(name)
        if not attribute:
            raise TypeError("attribute name is required")
        value = self.security(code).get(attribute)
        self.publish(f"{code.upper()} {attribute} {value}")

    def on_history(self, code: str, from_: Optional[str] = None, to: Optional[str] = None) -> None:
        """
        Process `history` command: publish one `<date> <open> <high> <low> <close> <volume>` line per trading day

        :param code: str: security code
        :param from_: Optional[str]:  (Default value = None) first day, ISO format
        :param to: Optional[str]:  (Default value = None) last day, ISO format

        """
        quotes = self.security(code).get_historical_quotes(from_, to)
        for day, row in quotes.items():
            self.publish(" ".join([format_trading_day(day)] +
                                  [str(v) for v in (row.open, row.high, row.low, row.close, row.volume)]))
        self.logger.info("published history", secid=code.upper(), rows=len(quotes))

    def on_refresh(self, code: str) -> None:
        """Process `refresh` command: re-fetch market data and publish the last price"""
        security = self.security(code)
        security.refresh()
        self.publish(f"{code.upper()} lastprice {security.get('lastprice')}")

    def on_boards(self, code: str) -> None:
        """Process `boards` command: publish available boards, the current one marked with `*`"""
        security = self.security(code)
        current = security.board
        for board in security.available_boards:
            marker = "*" if board == current else " "
            self.publish(f"{marker} {board.board_id} {board.engine} {board.market}")

    def on_indices(self, code: str) -> None:
        """Process `indices` command: publish the index codes the security belongs to"""
        for index in self.security(code).get_indices():
            self.publish(f"{index.get('SECID')} {index.get('SHORTNAME', '')}")

    def on_dates(self, code: str) -> None:
        """Process `dates` command: publish the available history interval"""
        dates = self.security(code).get_dates()
        self.publish(f"{code.upper()} {format_trading_day(dates.from_date)} {format_trading_day(dates.till_date)}")

    def on_find(self, *query: str) -> None:
        """Process `find` command: resolve free text to a code and publish it"""
        text = " ".join(query)
        security = Security.from_name(text, self.provider, self.logger)
        self._securities.setdefault(security.secid.upper(), security)
        self.publish(f"{text} {security.secid}")

    def publish(self, message: str):
        """
        Write given message to the output stream of this shell instance

        :param message: str: text to publish

        """
        print(message, file=self.out_stream)
