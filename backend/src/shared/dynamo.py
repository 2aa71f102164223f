"""
DynamoDB access for tasks, submissions and point wallets.

Settlement runs inside a task-scoped unit of work:
1. Acquire an exclusive lease on the Task item (conditional UpdateItem)
2. Read the task and related submissions with strongly consistent reads
3. Stage writes (escrow debit, submission, points credit, closure)
4. Commit everything plus the lease release in one TransactWriteItems call

Leaving the unit of work without committing discards the staged writes and
releases the lease, so no partial effect is ever visible.
"""
import time
import uuid
import boto3
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from .config import config
from .errors import TaskBusy, TaskNotFound
from .logging import logger
from .models import Submission, Task, TaskStatus, utc_now

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)
dynamodb_client = boto3.client('dynamodb', region_name=config.AWS_REGION)

_serializer = TypeSerializer()


def put_item(table_name: str, item: Dict[str, Any], condition: Optional[str] = None) -> bool:
    """
    Put a single item into DynamoDB.

    Args:
        table_name: Name of the DynamoDB table
        item: Item to write
        condition: Optional condition expression

    Returns:
        True if the item was written, False otherwise
    """
    try:
        table = dynamodb.Table(table_name)
        params = {'Item': item}
        if condition:
            params['ConditionExpression'] = condition
        table.put_item(**params)
        return True
    except ClientError as e:
        logger.error(f"Error putting item into {table_name}: {e}")
        return False


def serialize_item(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Convert a plain item into the low-level typed attribute format."""
    return {k: _serializer.serialize(v) for k, v in item.items()}


class TaskUnitOfWork:
    """
    Staging and transaction boundary for one task.

    Subclasses acquire the task exclusively in ``_acquire`` and apply staged
    writes atomically in ``_apply``. Use as a context manager.
    """

    def __init__(self, task_id: str):
        self.task_id = task_id
        self.task: Optional[Task] = None
        self.committed = False
        self._debit = 0
        self._close = False
        self._submission: Optional[Submission] = None
        self._credits: Dict[str, int] = {}

    def __enter__(self) -> 'TaskUnitOfWork':
        self.task = self._acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.committed:
            self.rollback()
        return False

    # Reads
    def has_submission(self, user_id: str) -> bool:
        raise NotImplementedError

    def count_correct_submissions(self) -> int:
        """Committed correct submissions for the task, staged ones excluded."""
        raise NotImplementedError

    # Staged writes
    def debit_escrow(self, amount: int) -> None:
        self._debit += amount

    def record_submission(self, submission: Submission) -> None:
        self._submission = submission

    def credit_points(self, user_id: str, amount: int) -> None:
        self._credits[user_id] = self._credits.get(user_id, 0) + amount

    def close_task(self) -> None:
        self._close = True

    def commit(self) -> None:
        self._apply()
        self.committed = True

    def rollback(self) -> None:
        self._debit = 0
        self._close = False
        self._submission = None
        self._credits = {}
        self._release()

    def _acquire(self) -> Task:
        raise NotImplementedError

    def _apply(self) -> None:
        raise NotImplementedError

    def _release(self) -> None:
        raise NotImplementedError


class DynamoUnitOfWork(TaskUnitOfWork):
    """Unit of work backed by a lease attribute on the Task item."""

    def __init__(self, store: 'DynamoTaskStore', task_id: str):
        super().__init__(task_id)
        self.store = store
        self.owner = str(uuid.uuid4())

    def _acquire(self) -> Task:
        tasks_table = self.store.tasks_table
        timeout = self.store.wait_timeout
        deadline = time.monotonic() + timeout if timeout > 0 else None

        while True:
            now = int(time.time())
            try:
                response = tasks_table.update_item(
                    Key={'taskId': self.task_id},
                    UpdateExpression='SET lockOwner = :owner, lockExpiresAt = :expires',
                    ConditionExpression=(
                        'attribute_exists(taskId) AND '
                        '(attribute_not_exists(lockOwner) OR lockExpiresAt < :now)'
                    ),
                    ExpressionAttributeValues={
                        ':owner': self.owner,
                        ':expires': now + self.store.lease_seconds,
                        ':now': now
                    },
                    ReturnValues='ALL_NEW'
                )
                attributes = response['Attributes']
                try:
                    return Task.from_item(attributes)
                except Exception:
                    # Lease is already written; give it back before failing
                    self._release()
                    raise
            except ClientError as e:
                if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                    raise

            # Either the task does not exist or someone else holds the lease
            existing = tasks_table.get_item(
                Key={'taskId': self.task_id},
                ConsistentRead=True,
                ProjectionExpression='taskId'
            )
            if not existing.get('Item'):
                raise TaskNotFound()

            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"Gave up waiting for lease on task {self.task_id}")
                raise TaskBusy()

            time.sleep(self.store.poll_interval)

    def has_submission(self, user_id: str) -> bool:
        response = self.store.submissions_table.get_item(
            Key={'taskId': self.task_id, 'userId': user_id},
            ConsistentRead=True
        )
        return 'Item' in response

    def count_correct_submissions(self) -> int:
        query_params = {
            'KeyConditionExpression': Key('taskId').eq(self.task_id),
            'FilterExpression': Attr('isCorrect').eq(True),
            'Select': 'COUNT',
            'ConsistentRead': True
        }
        total = 0
        while True:
            response = self.store.submissions_table.query(**query_params)
            total += int(response.get('Count', 0))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return total
            query_params['ExclusiveStartKey'] = last_key

    def build_transact_items(self) -> List[Dict[str, Any]]:
        """Translate the staged writes into TransactWriteItems entries."""
        timestamp = utc_now().isoformat()
        set_clauses = []
        condition = 'lockOwner = :owner'
        values = {':owner': self.owner}
        names = {}

        if self._debit:
            set_clauses.append('escrowBalance = escrowBalance - :debit')
            condition += ' AND escrowBalance >= :debit'
            values[':debit'] = self._debit
        if self._close:
            set_clauses.append('#status = :closed')
            set_clauses.append('closedAt = :ts')
            names['#status'] = 'status'
            values[':closed'] = TaskStatus.CLOSED
            values[':ts'] = timestamp

        update_expression = ''
        if set_clauses:
            update_expression = 'SET ' + ', '.join(set_clauses) + ' '
        update_expression += 'REMOVE lockOwner, lockExpiresAt'

        task_update = {
            'TableName': self.store.tasks_table_name,
            'Key': serialize_item({'taskId': self.task_id}),
            'UpdateExpression': update_expression,
            'ConditionExpression': condition,
            'ExpressionAttributeValues': serialize_item(values)
        }
        if names:
            task_update['ExpressionAttributeNames'] = names

        items = [{'Update': task_update}]

        if self._submission is not None:
            items.append({
                'Put': {
                    'TableName': self.store.submissions_table_name,
                    'Item': serialize_item(self._submission.to_item()),
                    'ConditionExpression': 'attribute_not_exists(taskId)'
                }
            })

        for user_id, amount in self._credits.items():
            items.append({
                'Update': {
                    'TableName': self.store.wallets_table_name,
                    'Key': serialize_item({'walletId': user_id}),
                    'UpdateExpression': 'ADD points :amount SET updatedAt = :ts',
                    'ExpressionAttributeValues': serialize_item({
                        ':amount': amount,
                        ':ts': timestamp
                    })
                }
            })

        return items

    def _apply(self) -> None:
        self.store.client.transact_write_items(TransactItems=self.build_transact_items())

    def _release(self) -> None:
        try:
            self.store.tasks_table.update_item(
                Key={'taskId': self.task_id},
                UpdateExpression='REMOVE lockOwner, lockExpiresAt',
                ConditionExpression='lockOwner = :owner',
                ExpressionAttributeValues={':owner': self.owner}
            )
        except ClientError as e:
            # Lease already expired and was taken over; its TTL bounds the damage
            logger.error(f"Could not release lease on task {self.task_id}: {e}")


class DynamoTaskStore:
    """Factory for DynamoDB-backed task units of work."""

    def __init__(
        self,
        resource=None,
        client=None,
        tasks_table_name: Optional[str] = None,
        submissions_table_name: Optional[str] = None,
        wallets_table_name: Optional[str] = None,
        lease_seconds: Optional[int] = None,
        poll_interval: Optional[float] = None,
        wait_timeout: Optional[float] = None
    ):
        resource = resource or dynamodb
        self.client = client or dynamodb_client
        self.tasks_table_name = tasks_table_name or config.TASKS_TABLE
        self.submissions_table_name = submissions_table_name or config.SUBMISSIONS_TABLE
        self.wallets_table_name = wallets_table_name or config.WALLETS_TABLE
        self.tasks_table = resource.Table(self.tasks_table_name)
        self.submissions_table = resource.Table(self.submissions_table_name)
        self.lease_seconds = lease_seconds if lease_seconds is not None else config.LOCK_LEASE_SECONDS
        self.poll_interval = poll_interval if poll_interval is not None else config.LOCK_POLL_INTERVAL_SECONDS
        self.wait_timeout = wait_timeout if wait_timeout is not None else config.LOCK_WAIT_TIMEOUT_SECONDS

    def unit_of_work(self, task_id: str) -> DynamoUnitOfWork:
        return DynamoUnitOfWork(self, task_id)
