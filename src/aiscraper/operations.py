from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Sequence

from aiscraper.api_client import ApiResult
from aiscraper.errors import ApiClientError, describe_error, describe_failure
from aiscraper.notifications import (
    LoadingMessages,
    NotificationKind,
    NotificationManager,
    Operation,
    resolve_operation,
)


logger = logging.getLogger("aiscraper.operations")

ErrorHandler = Callable[[BaseException], str | None]


def crud_messages(verb: str, item_type: str) -> LoadingMessages:
    # verb is one of create/update/delete/fetch/save
    progressive = {
        "create": "Creating",
        "update": "Updating",
        "delete": "Deleting",
        "fetch": "Loading",
        "save": "Saving",
    }[verb]
    past = {
        "create": "created",
        "update": "updated",
        "delete": "deleted",
        "fetch": "loaded",
        "save": "saved",
    }[verb]
    infinitive = "load" if verb == "fetch" else verb
    return LoadingMessages(
        loading=f"{progressive} {item_type}...",
        success=f"{item_type} {past} successfully",
        error=f"Failed to {infinitive} {item_type}",
    )


class ApiNotifications:
    """Wraps API operations with loading/success/error notifications."""

    def __init__(self, manager: NotificationManager) -> None:
        self.manager = manager

    async def with_notifications(
        self,
        operation: Operation,
        messages: LoadingMessages,
        *,
        show_success: bool = True,
        error_handler: ErrorHandler | None = None,
    ) -> Any:
        loading_id = self.manager.loading(messages.loading)
        try:
            result = await resolve_operation(operation)
        except Exception as exc:
            self.manager.dismiss(loading_id)
            self.manager.error("Operation failed", self._error_text(exc, messages, error_handler))
            raise
        except BaseException:
            self.manager.dismiss(loading_id)
            raise

        self.manager.dismiss(loading_id)
        if isinstance(result, ApiResult) and not result.ok and result.error is not None:
            # Report through the same path an exception would take, without raising.
            exc = ApiClientError(result.error, attempts=result.attempts)
            self.manager.error("Operation failed", self._error_text(exc, messages, error_handler))
        elif show_success:
            self.manager.success(messages.success)
        return result

    @staticmethod
    def _error_text(
        exc: BaseException,
        messages: LoadingMessages,
        error_handler: ErrorHandler | None,
    ) -> str:
        if error_handler is not None:
            custom = error_handler(exc)
            if custom:
                return custom
        if isinstance(exc, ApiClientError):
            return describe_error(exc.error)
        text = str(exc)
        return text if text else (messages.error or "Operation failed")

    async def create(self, operation: Operation, item_type: str, **kwargs: Any) -> Any:
        return await self.with_notifications(operation, crud_messages("create", item_type), **kwargs)

    async def update(self, operation: Operation, item_type: str, **kwargs: Any) -> Any:
        return await self.with_notifications(operation, crud_messages("update", item_type), **kwargs)

    async def delete(self, operation: Operation, item_type: str, **kwargs: Any) -> Any:
        return await self.with_notifications(operation, crud_messages("delete", item_type), **kwargs)

    async def fetch(self, operation: Operation, item_type: str, **kwargs: Any) -> Any:
        kwargs.setdefault("show_success", False)
        return await self.with_notifications(operation, crud_messages("fetch", item_type), **kwargs)

    async def save(self, operation: Operation, item_type: str | None = None, **kwargs: Any) -> Any:
        return await self.with_notifications(operation, crud_messages("save", item_type or "changes"), **kwargs)

    async def batch(
        self,
        operations: Sequence[Callable[[], Awaitable[Any]]],
        item_type: str,
        *,
        show_success: bool = True,
    ) -> list[Any]:
        """Run `operations` one after another and summarize them in a single notification.

        Individual failures are collected, not raised; the successful results
        are returned in order.
        """
        loading_id = self.manager.loading(f"Processing {len(operations)} {item_type}(s)...")
        results: list[Any] = []
        failures: list[BaseException] = []
        try:
            for operation in operations:
                try:
                    result = await operation()
                except Exception as exc:
                    logger.info("batch item failed: %s", describe_failure(exc))
                    failures.append(exc)
                    continue
                if isinstance(result, ApiResult) and not result.ok and result.error is not None:
                    failures.append(ApiClientError(result.error, attempts=result.attempts))
                    continue
                results.append(result)
        finally:
            self.manager.dismiss(loading_id)

        if not failures:
            if show_success:
                self.manager.success(
                    f"All {item_type}(s) processed successfully",
                    f"{len(results)} items completed",
                )
        elif results:
            self.manager.error(
                "Partial success",
                f"{len(results)} {item_type}(s) succeeded, {len(failures)} failed",
            )
        else:
            self.manager.error(
                "Processing failed",
                f"All {len(failures)} {item_type}(s) failed to process",
            )
        return results


class ProgressNotification:
    """A loading notification that reports percentage progress in place."""

    def __init__(self, manager: NotificationManager, title: str, message: str | None = None) -> None:
        self._manager = manager
        self.progress = 0.0
        self.id = manager.loading(title, message or "Starting...")

    def update_progress(self, progress: float, message: str | None = None) -> None:
        self.progress = max(0.0, min(100.0, float(progress)))
        self._manager.update_notification(
            self.id,
            message=f"{message or 'Processing...'} ({round(self.progress)}%)",
        )

    def complete(self, message: str | None = None) -> None:
        self._manager.update_notification(
            self.id,
            kind=NotificationKind.SUCCESS,
            title="Complete",
            message=message or "Operation completed successfully",
            duration_ms=3000,
        )

    def fail(self, message: str | None = None) -> None:
        self._manager.update_notification(
            self.id,
            kind=NotificationKind.ERROR,
            title="Error",
            message=message or "Operation failed",
            duration_ms=5000,
        )

    def dismiss(self) -> None:
        self._manager.dismiss(self.id)
