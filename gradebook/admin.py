from django.contrib import admin

from .models import AssignmentRubric, Grade, Rubric, RubricCriterion


class RubricCriterionInline(admin.TabularInline):
    model = RubricCriterion
    extra = 0


@admin.register(Rubric)
class RubricAdmin(admin.ModelAdmin):
    list_display = ("name", "school", "created_by", "created_at")
    list_filter = ("school",)
    search_fields = ("name",)
    inlines = [RubricCriterionInline]


@admin.register(AssignmentRubric)
class AssignmentRubricAdmin(admin.ModelAdmin):
    list_display = ("assignment", "rubric", "created_at")


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ("assignment", "student", "criterion", "score", "max_score", "graded_at")
    list_filter = ("assignment__school",)
