from __future__ import annotations

from rest_framework import serializers


class ErrorSerializer(serializers.Serializer):
    error = serializers.CharField()
    message = serializers.CharField()


class SectionBriefSerializer(serializers.Serializer):
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    order = serializers.IntegerField()


class LearnCardStateSerializer(serializers.Serializer):
    card_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    order = serializers.IntegerField()
    problem_count = serializers.IntegerField()
    passed = serializers.BooleanField()
    unlocked = serializers.BooleanField()


class LearnNodeSerializer(serializers.Serializer):
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    require_nids = serializers.ListField(child=serializers.CharField())
    order = serializers.IntegerField()
    cards = LearnCardStateSerializer(many=True)


class NextCardSerializer(serializers.Serializer):
    node_id = serializers.CharField()
    card_id = serializers.CharField()


class LearnHomeSerializer(serializers.Serializer):
    domain_id = serializers.CharField()
    base_id = serializers.CharField()
    branch = serializers.CharField()
    sections = SectionBriefSerializer(many=True)
    current_section_index = serializers.IntegerField(allow_null=True)
    current_section_id = serializers.CharField(allow_null=True)
    current_section_title = serializers.CharField(allow_null=True, allow_blank=True)
    dag = LearnNodeSerializer(many=True)
    current_progress = serializers.IntegerField()
    total_cards = serializers.IntegerField()
    next_card = NextCardSerializer(allow_null=True)
    learn_progress_position = serializers.IntegerField()
    learn_progress_total = serializers.IntegerField()
    daily_goal = serializers.IntegerField()
    today_completed = serializers.IntegerField()
    consecutive_days = serializers.IntegerField()
    total_checkin_days = serializers.IntegerField()
    goal_met = serializers.BooleanField()


class SectionSummarySerializer(serializers.Serializer):
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    order = serializers.IntegerField()
    total_cards = serializers.IntegerField()
    passed_cards = serializers.IntegerField()


class DAGNodeBriefSerializer(serializers.Serializer):
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    require_nids = serializers.ListField(child=serializers.CharField())
    order = serializers.IntegerField()
    card_count = serializers.IntegerField()


class LearnSectionsSerializer(serializers.Serializer):
    domain_id = serializers.CharField()
    branch = serializers.CharField()
    sections = SectionSummarySerializer(many=True)
    dag = DAGNodeBriefSerializer(many=True)
    section_order = serializers.ListField(child=serializers.CharField())
    current_section_index = serializers.IntegerField(allow_null=True)
    current_section_id = serializers.CharField(allow_null=True)


class SectionOrderResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    section_order = serializers.ListField(child=serializers.CharField())
    current_section_index = serializers.IntegerField(allow_null=True)
    current_section_id = serializers.CharField(allow_null=True)


class BranchResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    branch = serializers.CharField()
    branches = serializers.ListField(child=serializers.CharField())


class DailyGoalResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    daily_goal = serializers.IntegerField()


class ReviewQueueSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    review_queue = serializers.ListField(child=serializers.CharField())


class CardSerializer(serializers.Serializer):
    card_id = serializers.CharField()
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    order = serializers.IntegerField()
    content = serializers.CharField(allow_blank=True)
    problem_count = serializers.IntegerField()
    problems = serializers.ListField(child=serializers.JSONField())


class NodeCardBriefSerializer(serializers.Serializer):
    card_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)


class LessonSerializer(serializers.Serializer):
    card = CardSerializer()
    node_id = serializers.CharField(allow_null=True)
    node_title = serializers.CharField(allow_null=True, allow_blank=True)
    node_cards = NodeCardBriefSerializer(many=True)
    current_index = serializers.IntegerField()
    mode = serializers.CharField(allow_null=True)
    lesson_node_id = serializers.CharField(allow_null=True)
    position = serializers.IntegerField()
    total = serializers.IntegerField()
    from_review = serializers.BooleanField()


class PassOutcomeSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    result_id = serializers.CharField()
    card_id = serializers.CharField()
    node_id = serializers.CharField(allow_null=True)
    score = serializers.IntegerField()
    next = serializers.ChoiceField(choices=["lesson", "lesson_result", "learn", "node_result"])
    next_node_id = serializers.CharField(allow_null=True)
    section_advanced = serializers.BooleanField()
    current_section_index = serializers.IntegerField(allow_null=True)
    current_section_id = serializers.CharField(allow_null=True)


class ProblemStatSerializer(serializers.Serializer):
    problem_id = serializers.CharField()
    attempts = serializers.IntegerField()
    time_spent = serializers.FloatField()
    correct = serializers.BooleanField()


class ResultSummarySerializer(serializers.Serializer):
    result_id = serializers.CharField()
    card_id = serializers.CharField()
    node_id = serializers.CharField(allow_null=True)
    score = serializers.IntegerField()
    total_time = serializers.FloatField()
    created_at = serializers.CharField()


class LessonResultSerializer(ResultSummarySerializer):
    card = CardSerializer()
    node_title = serializers.CharField(allow_blank=True)
    answer_count = serializers.IntegerField()
    problem_stats = ProblemStatSerializer(many=True)


class NodeResultSerializer(serializers.Serializer):
    node_id = serializers.CharField()
    title = serializers.CharField(allow_blank=True)
    total_cards = serializers.IntegerField()
    passed_cards = serializers.IntegerField()
    practices = serializers.IntegerField()
    total_time = serializers.FloatField()
    results = ResultSummarySerializer(many=True)


class ConsumptionSerializer(serializers.Serializer):
    nodes = serializers.IntegerField()
    cards = serializers.IntegerField()
    problems = serializers.IntegerField()
    practices = serializers.IntegerField()
    total_time = serializers.FloatField()


class LearningStatsSerializer(serializers.Serializer):
    date = serializers.CharField()
    consecutive_days = serializers.IntegerField()
    total_checkin_days = serializers.IntegerField()
    today_completed = serializers.IntegerField()
    daily_goal = serializers.IntegerField()
    goal_met = serializers.BooleanField()
    today_consumption = ConsumptionSerializer()


class HealthCheckSerializer(serializers.Serializer):
    status = serializers.CharField()
    version = serializers.CharField()
    dag_store = serializers.CharField()
    timestamp = serializers.CharField()
