"""
Query Execution Engine

Runs ``TransactionQuery`` objects against the ledger. Execution is
deterministic: every number in a result is computed from stored
transactions, and "nothing found" is reported explicitly rather than
guessed around.

Failures never escape ``execute``; they come back as a
``QueryResult(success=False)`` carrying the error message.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from account_book.audit import AuditLogger
from account_book.logging_setup import get_logger
from account_book.models.query import QueryResult, TransactionQuery
from account_book.models.transaction import Transaction
from account_book.queries.ledger import TransactionLedger

logger = get_logger(__name__)


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class QueryExecutor:
    """
    Executes structured queries against the transaction ledger.

    GUARANTEES:
    - Only returns real data from storage
    - Amount totals are exact Decimals
    - Clear "no data found" if nothing matches
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._audit = audit_logger or AuditLogger()

    def execute(self, query: TransactionQuery) -> QueryResult:
        """Execute a structured query and return results."""
        try:
            if query.query_type == "list":
                result = self._execute_list(query)
            elif query.query_type == "aggregate":
                result = self._execute_aggregate(query)
            elif query.query_type == "exists":
                result = self._execute_exists(query)
            else:
                raise QueryExecutionError(f"Unsupported query type: {query.query_type}")
        except Exception as e:
            logger.error(
                "query_failed",
                query_id=str(query.query_id),
                query_type=query.query_type,
                error=str(e),
            )
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {str(e)}",
            )

        self._audit.log_query_executed(query.query_id, query.query_type, result.result_count)
        return result

    # =========================================================================
    # FETCHING
    # =========================================================================

    def _fetch(self, query: TransactionQuery) -> list[Transaction]:
        """Read the narrowest partition set for the query, then filter."""
        if query.institution_ids is not None and not query.institution_ids:
            return []

        if query.year is not None and query.month is not None:
            candidates = self._ledger.find_by_month(query.year, query.month)
        elif query.year is not None:
            candidates = self._ledger.find_by_year(query.year)
        elif query.date_from is not None and query.date_to is not None:
            candidates = self._ledger.find_by_date_range(query.date_from, query.date_to)
        else:
            candidates = self._ledger.find_all()

        return [tx for tx in candidates if self._matches(tx, query)]

    @staticmethod
    def _matches(tx: Transaction, query: TransactionQuery) -> bool:
        if query.institution_ids is not None and tx.institution_id not in query.institution_ids:
            return False
        if query.account_id is not None and tx.account_id != query.account_id:
            return False
        if query.category_type is not None and tx.category.type != query.category_type:
            return False
        if query.date_from is not None and tx.date < query.date_from:
            return False
        if query.date_to is not None and tx.date > query.date_to:
            return False
        if query.is_reconciled is not None and tx.is_reconciled != query.is_reconciled:
            return False
        return True

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _execute_list(self, query: TransactionQuery) -> QueryResult:
        """Execute a list query."""
        transactions = self._fetch(query)[:query.limit]
        results = [tx.to_document() for tx in transactions]

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description=" | ".join(["Listing transactions"] + self._describe_filters(query)),
        )

    def _execute_aggregate(self, query: TransactionQuery) -> QueryResult:
        """Execute an aggregate query (income, expense, balance, count)."""
        transactions = self._fetch(query)

        if not transactions:
            return QueryResult(
                query_id=query.query_id,
                success=True,
                data_found=False,
                result_count=0,
                query_description="No transactions found for aggregation",
            )

        aggregation_result = self._totals(transactions)

        if query.group_by:
            aggregation_result["breakdown"] = self._grouped_totals(transactions, query.group_by)

        desc_parts = ["Calculating totals"] + self._describe_filters(query)
        if query.group_by:
            desc_parts.append(f"grouped by {query.group_by}")

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=True,
            result_count=len(transactions),
            aggregation_result=aggregation_result,
            query_description=" ".join(desc_parts),
        )

    def _execute_exists(self, query: TransactionQuery) -> QueryResult:
        """Execute an exists query (yes/no check)."""
        transactions = self._fetch(query)
        exists = len(transactions) > 0

        result_data = [{"exists": exists, "answer": "yes" if exists else "no"}]
        if exists:
            # Include the first match for context
            result_data.append(transactions[0].to_document())

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=exists,
            result_count=1 if exists else 0,
            results=result_data,
            query_description=" ".join(["Checking if any transaction"] + self._describe_filters(query)),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _totals(transactions: list[Transaction]) -> dict:
        income = sum((tx.amount for tx in transactions if tx.amount > 0), Decimal("0"))
        expense = sum((-tx.amount for tx in transactions if tx.amount < 0), Decimal("0"))
        return {
            "income": income,
            "expense": expense,
            "balance": income - expense,
            "count": len(transactions),
        }

    def _grouped_totals(self, transactions: list[Transaction], group_by: str) -> dict:
        groups: dict[str, list[Transaction]] = {}

        for tx in transactions:
            if group_by == "category":
                key = tx.category.name
            elif group_by == "month":
                key = tx.date.strftime("%Y-%m")
            elif group_by == "institution":
                key = tx.institution_id
            else:
                key = "other"
            groups.setdefault(key, []).append(tx)

        return {key: self._totals(group) for key, group in sorted(groups.items())}

    def _describe_filters(self, query: TransactionQuery) -> list[str]:
        parts = []
        if query.category_type:
            parts.append(f"category: {query.category_type.value}")
        if query.institution_ids is not None:
            parts.append(f"institutions: {', '.join(query.institution_ids) or 'none'}")
        if query.account_id:
            parts.append(f"account: {query.account_id}")
        if query.is_reconciled is not None:
            parts.append("reconciled" if query.is_reconciled else "unreconciled")
        if query.year is not None:
            period = f"{query.year:04d}-{query.month:02d}" if query.month else str(query.year)
            parts.append(f"in {period}")
        if query.date_from or query.date_to:
            parts.append(self._date_range_str(query.date_from, query.date_to))
        return parts

    def _date_range_str(
        self,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> str:
        """Format date range for description."""
        if date_from and date_to:
            if date_from.date() == date_to.date():
                return f"on {date_from.strftime('%d %b %Y')}"
            elif date_from.month == date_to.month and date_from.year == date_to.year:
                return f"in {date_from.strftime('%B %Y')}"
            return f"from {date_from.strftime('%d %b %Y')} to {date_to.strftime('%d %b %Y')}"
        elif date_from:
            return f"from {date_from.strftime('%d %b %Y')}"
        elif date_to:
            return f"until {date_to.strftime('%d %b %Y')}"
        return ""
